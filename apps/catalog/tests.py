from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from apps.installments.test_data_seeder import TestDataSeeder


class ProductAPITestCase(APITestCase):

    def setUp(self):
        self.seeder = TestDataSeeder()
        manager = self.seeder.create_manager()
        token = RefreshToken.for_user(manager).access_token
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        self.tv = self.seeder.create_product(name='LED TV', sku='TV-43')
        self.fan = self.seeder.create_product(name='Ceiling Fan', sku='FAN-56', quantity=0)

    def test_create_product(self):
        data = {'name': 'Washing Machine', 'sku': 'WM-7', 'price': '85000.00', 'quantity': 3}

        response = self.client.post(reverse('product-list'), data)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['in_stock'])

    def test_price_must_be_positive(self):
        data = {'name': 'Iron', 'sku': 'IR-1', 'price': '0', 'quantity': 1}

        response = self.client.post(reverse('product-list'), data)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_by_name_or_sku(self):
        response = self.client.get(reverse('product-list'), {'q': 'fan'})

        self.assertEqual([row['sku'] for row in response.data['results']], ['FAN-56'])

    def test_in_stock_filter(self):
        response = self.client.get(reverse('product-list'), {'in_stock': 'true'})

        self.assertEqual([row['sku'] for row in response.data['results']], ['TV-43'])

    def test_anonymous_request_rejected(self):
        self.client.credentials()

        response = self.client.get(reverse('product-list'))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
