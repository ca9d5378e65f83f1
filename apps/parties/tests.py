from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from decimal import Decimal

from apps.installments.test_data_seeder import TestDataSeeder
from .models import CreditRegisterEntry
from .views import search_parties


class PartyAPITestCase(APITestCase):

    def setUp(self):
        self.seeder = TestDataSeeder()
        self.cashier = self.seeder.create_cashier()
        token = RefreshToken.for_user(self.cashier).access_token
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        self.customer = self.seeder.create_customer(
            full_name='Zainab Malik', phone='03001234567', national_id='35202-1111111-2'
        )
        self.guarantor = self.seeder.create_guarantor(full_name='Usman Malik')

    def test_create_party(self):
        data = {'full_name': '  Faisal Khan ', 'phone': '03219876543', 'role': 'customer'}

        response = self.client.post(reverse('party-list'), data)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['full_name'], 'Faisal Khan')
        self.assertEqual(Decimal(response.data['available_credit']), Decimal('0.00'))

    def test_filter_by_role(self):
        response = self.client.get(reverse('party-list'), {'role': 'guarantor'})

        names = [row['full_name'] for row in response.data['results']]
        self.assertEqual(names, ['Usman Malik'])

    def test_search_matches_phone_and_national_id(self):
        self.assertEqual(list(search_parties('1234567')), [self.customer])
        self.assertEqual(list(search_parties('1111111')), [self.customer])
        self.assertEqual(set(search_parties('malik')), {self.guarantor, self.customer})

    def test_search_endpoint(self):
        response = self.client.get(reverse('party_search'), {'q': 'zainab'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_register_balance(self):
        self.seeder.add_credit(self.customer, Decimal('500.00'))
        self.seeder.add_credit(self.customer, Decimal('200.00'), transaction_type='debit')

        response = self.client.get(reverse('party-register', args=[self.customer.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available_credit'], Decimal('300.00'))
        self.assertEqual(len(response.data['entries']), 2)

    def test_manual_register_entry(self):
        data = {'transaction_type': 'credit', 'amount': '150.00', 'description': 'Cash refund'}

        response = self.client.post(reverse('party-register', args=[self.customer.id]), data)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        entry = CreditRegisterEntry.objects.get(id=response.data['id'])
        self.assertEqual(entry.created_by, self.cashier)
        self.assertEqual(self.customer.available_credit, Decimal('150.00'))

    def test_register_rejects_non_positive_amount(self):
        data = {'transaction_type': 'credit', 'amount': '0', 'description': 'Nothing'}

        response = self.client.post(reverse('party-register', args=[self.customer.id]), data)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_not_kept_for_guarantors(self):
        response = self.client.get(reverse('party-register', args=[self.guarantor.id]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
