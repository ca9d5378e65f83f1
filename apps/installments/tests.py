from django.test import TestCase, SimpleTestCase, override_settings
from django.core.exceptions import ValidationError
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from decimal import Decimal
from datetime import date, timedelta

from apps.parties.models import Party, CreditRegisterEntry
from .models import InstallmentPlan, RepaymentEntry, PlanGuarantor
from .test_data_seeder import TestDataSeeder
from .utils import (
    calculate_emi,
    calculate_plan_totals,
    classify_entry_status,
    due_date_for,
    financed_amount_for,
    generate_schedule,
    get_plan_summary,
    pay_installment,
    periodic_rate,
)


class EMICalculationTestCase(SimpleTestCase):
    """EMI formula and input validation"""

    def test_emi_matches_pmt_formula(self):
        # 100,000 at 12% a year over 12 months: 1% a month
        self.assertEqual(calculate_emi(Decimal('100000.00'), 12, 12), Decimal('8884.88'))

    def test_zero_rate_is_principal_over_periods(self):
        self.assertEqual(calculate_emi(Decimal('1000.00'), 0, 3), Decimal('333.33'))
        self.assertEqual(calculate_emi(Decimal('1200.00'), 0, 12), Decimal('100.00'))

    def test_periods_per_year_by_tenor(self):
        self.assertEqual(periodic_rate(12, 'month'), Decimal('0.01'))
        self.assertEqual(periodic_rate(52, 'week'), Decimal('0.01'))
        self.assertEqual(periodic_rate(Decimal('36.5'), 'day'), Decimal('0.001'))

    def test_invalid_inputs_rejected(self):
        with self.assertRaises(ValidationError):
            calculate_emi(Decimal('0'), 12, 12)
        with self.assertRaises(ValidationError):
            calculate_emi(Decimal('1000'), -1, 12)
        with self.assertRaises(ValidationError):
            calculate_emi(Decimal('1000'), 101, 12)
        with self.assertRaises(ValidationError):
            calculate_emi(Decimal('1000'), 12, 0)
        with self.assertRaises(ValidationError):
            calculate_emi(Decimal('1000'), 12, 12, 'year')


class ScheduleGenerationTestCase(SimpleTestCase):
    """Amortization schedule invariants"""

    START = date(2024, 1, 15)
    TODAY = date(2024, 1, 1)

    def assert_schedule_invariants(self, principal, rate, tenure, tenor_type='month'):
        schedule = generate_schedule(principal, rate, tenure, self.START, tenor_type, today=self.TODAY)
        label = f"P={principal} r={rate} n={tenure} {tenor_type}"

        self.assertEqual(len(schedule), tenure, label)
        self.assertEqual([line.installment_number for line in schedule], list(range(1, tenure + 1)), label)
        self.assertEqual(sum(line.principal for line in schedule), principal, label)
        self.assertEqual(schedule[-1].balance, Decimal('0.00'), label)

        balances = [principal] + [line.balance for line in schedule]
        for previous, current in zip(balances, balances[1:]):
            self.assertLess(current, previous, label)

        emi_amounts = {line.emi_amount for line in schedule[:-1]}
        self.assertLessEqual(len(emi_amounts), 1, label)

        for line in schedule:
            self.assertEqual(line.emi_amount, line.principal + line.interest, label)
            self.assertGreaterEqual(line.interest, Decimal('0.00'), label)

    def test_invariants_hold_across_terms(self):
        for principal in (Decimal('1000.00'), Decimal('999.99'), Decimal('125000.00')):
            for rate in (0, Decimal('7.5'), 18, 36):
                for tenure in (1, 3, 12, 24):
                    self.assert_schedule_invariants(principal, rate, tenure)
        self.assert_schedule_invariants(Decimal('10.00'), 0, 60)

    def test_invariants_hold_for_weekly_and_daily_tenors(self):
        self.assert_schedule_invariants(Decimal('10000.00'), 52, 4, 'week')
        self.assert_schedule_invariants(Decimal('5000.00'), 20, 30, 'day')

    def test_first_period_interest_on_full_balance(self):
        schedule = generate_schedule(Decimal('100000.00'), 12, 12, self.START, today=self.TODAY)

        first = schedule[0]
        self.assertEqual(first.interest, Decimal('1000.00'))
        self.assertEqual(first.principal, Decimal('7884.88'))
        self.assertEqual(first.balance, Decimal('92115.12'))
        self.assertEqual(first.emi_amount, Decimal('8884.88'))

    def test_final_entry_absorbs_rounding(self):
        schedule = generate_schedule(Decimal('1000.00'), 0, 3, self.START, today=self.TODAY)

        self.assertEqual([line.principal for line in schedule],
                         [Decimal('333.33'), Decimal('333.33'), Decimal('333.34')])
        self.assertEqual([line.balance for line in schedule],
                         [Decimal('666.67'), Decimal('333.34'), Decimal('0.00')])
        self.assertEqual(schedule[-1].emi_amount, Decimal('333.34'))

    def test_small_amount_over_long_tenure_rounds_emi_down(self):
        # 10.00 / 60 rounds half-up to 0.17, which would clear the balance by month 59
        schedule = generate_schedule(Decimal('10.00'), 0, 60, self.START, today=self.TODAY)

        self.assertEqual({line.emi_amount for line in schedule[:-1]}, {Decimal('0.16')})
        self.assertEqual(schedule[-1].emi_amount, Decimal('0.56'))
        self.assertEqual(schedule[-1].balance, Decimal('0.00'))

    def test_zero_rate_gives_equal_principal_installments(self):
        schedule = generate_schedule(Decimal('1200.00'), 0, 12, self.START, today=self.TODAY)

        for line in schedule:
            self.assertEqual(line.principal, Decimal('100.00'))
            self.assertEqual(line.interest, Decimal('0.00'))

    def test_identical_inputs_give_identical_schedule(self):
        first = generate_schedule(Decimal('48500.00'), Decimal('15.5'), 18, self.START, today=self.TODAY)
        second = generate_schedule(Decimal('48500.00'), Decimal('15.5'), 18, self.START, today=self.TODAY)

        self.assertEqual(first, second)

    def test_amount_too_small_for_tenure_rejected(self):
        with self.assertRaises(ValidationError):
            generate_schedule(Decimal('0.02'), 0, 3, self.START, today=self.TODAY)
        with self.assertRaises(ValidationError):
            generate_schedule(Decimal('0.05'), 0, 10, self.START, today=self.TODAY)

    def test_monthly_due_dates_clamp_to_month_end(self):
        start = date(2024, 1, 31)
        self.assertEqual(
            [due_date_for(start, n) for n in (1, 2, 3)],
            [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]
        )

    def test_weekly_and_daily_due_dates(self):
        self.assertEqual(due_date_for(self.START, 2, 'week'), date(2024, 1, 29))
        self.assertEqual(due_date_for(self.START, 10, 'day'), date(2024, 1, 25))

    def test_schedule_lines_carry_time_based_status(self):
        schedule = generate_schedule(
            Decimal('3000.00'), 0, 3, self.START, today=date(2024, 3, 20)
        )

        self.assertEqual([line.status for line in schedule], ['overdue', 'overdue', 'upcoming'])


class StatusClassificationTestCase(SimpleTestCase):

    DUE = date(2024, 5, 10)

    def test_before_due_date_is_upcoming(self):
        self.assertEqual(classify_entry_status(self.DUE, date(2024, 5, 9), grace_days=0), 'upcoming')

    def test_on_due_date_is_due(self):
        self.assertEqual(classify_entry_status(self.DUE, self.DUE, grace_days=0), 'due')

    def test_after_due_date_without_grace_is_overdue(self):
        self.assertEqual(classify_entry_status(self.DUE, date(2024, 5, 11), grace_days=0), 'overdue')

    def test_grace_window_keeps_entry_due(self):
        self.assertEqual(classify_entry_status(self.DUE, date(2024, 5, 13), grace_days=3), 'due')
        self.assertEqual(classify_entry_status(self.DUE, date(2024, 5, 14), grace_days=3), 'overdue')

    def test_settled_statuses_are_kept(self):
        self.assertEqual(
            classify_entry_status(self.DUE, date(2024, 6, 1), grace_days=0, current_status='paid'), 'paid'
        )
        self.assertEqual(
            classify_entry_status(self.DUE, date(2024, 6, 1), grace_days=0, current_status='partial'), 'partial'
        )


class PlanTotalsTestCase(SimpleTestCase):

    def test_financed_amount_is_price_less_down_payment(self):
        self.assertEqual(
            financed_amount_for(Decimal('120000.00'), Decimal('20000.00')), Decimal('100000.00')
        )

    def test_finance_amount_override_replaces_price(self):
        self.assertEqual(
            financed_amount_for(Decimal('120000.00'), Decimal('10000.00'), Decimal('90000.00')),
            Decimal('80000.00')
        )
        # zero override falls back to the price
        self.assertEqual(
            financed_amount_for(Decimal('120000.00'), Decimal('10000.00'), Decimal('0')),
            Decimal('110000.00')
        )

    def test_down_payment_must_leave_something_to_finance(self):
        with self.assertRaises(ValidationError):
            financed_amount_for(Decimal('5000.00'), Decimal('5000.00'))
        with self.assertRaises(ValidationError):
            financed_amount_for(Decimal('5000.00'), Decimal('-1.00'))

    def test_total_payable_is_emi_times_tenure(self):
        totals = calculate_plan_totals(
            Decimal('120000.00'), Decimal('20000.00'), 12, 12, date(2024, 1, 1), today=date(2024, 1, 1)
        )

        self.assertEqual(totals['financed_amount'], Decimal('100000.00'))
        self.assertEqual(totals['emi_amount'], Decimal('8884.88'))
        self.assertEqual(totals['total_payable'], totals['emi_amount'] * 12)
        self.assertEqual(totals['total_payable'], Decimal('106618.56'))
        self.assertEqual(totals['total_interest'], totals['total_payable'] - totals['financed_amount'])
        self.assertEqual(len(totals['schedule']), 12)

    def test_total_payable_ignores_final_entry_adjustment(self):
        # EMI 148.63; the final schedule line is two cents short of it
        totals = calculate_plan_totals(
            Decimal('1000.00'), Decimal('0'), 12, 7, date(2025, 1, 1), today=date(2025, 1, 1)
        )

        self.assertEqual(totals['emi_amount'], Decimal('148.63'))
        self.assertEqual(totals['total_payable'], Decimal('1040.41'))
        self.assertEqual(totals['total_interest'], Decimal('40.41'))
        self.assertEqual(sum(line.emi_amount for line in totals['schedule']), Decimal('1040.39'))

    def test_zero_rate_has_no_interest(self):
        totals = calculate_plan_totals(
            Decimal('1200.00'), Decimal('0'), 0, 3, date(2024, 1, 1), today=date(2024, 1, 1)
        )

        self.assertEqual(totals['total_payable'], Decimal('1200.00'))
        self.assertEqual(totals['total_interest'], Decimal('0.00'))

    @override_settings(MAX_TENURE=12)
    def test_tenure_above_maximum_rejected(self):
        with self.assertRaises(ValidationError):
            calculate_plan_totals(Decimal('1000.00'), 0, 0, 13, date(2024, 1, 1))


class PaymentFlowTestCase(TestCase):
    """Full, partial and over-payments against a seeded plan"""

    def setUp(self):
        self.seeder = TestDataSeeder()
        self.cashier = self.seeder.create_cashier()
        self.customer = self.seeder.create_customer()
        self.plan = self.seeder.create_plan(customer=self.customer, created_by=self.cashier)
        self.entries = list(self.plan.schedule.order_by('installment_number'))

    def test_full_payment_settles_entry_and_updates_plan(self):
        first, second = self.entries[0], self.entries[1]

        result = pay_installment(self.plan, 1, first.emi_amount, user=self.cashier)

        first.refresh_from_db()
        self.plan.refresh_from_db()
        self.assertEqual(first.status, 'paid')
        self.assertEqual(first.paid_date, date.today())
        self.assertEqual(first.actual_paid_amount, first.emi_amount)
        self.assertEqual(result['overpayment'], Decimal('0.00'))
        self.assertEqual(self.plan.paid_installments, 1)
        self.assertEqual(self.plan.remaining_installments, 5)
        self.assertEqual(self.plan.next_due_date, second.due_date)

    def test_partial_payment_then_remainder(self):
        first = self.entries[0]

        result = pay_installment(self.plan, 1, Decimal('1000.00'), user=self.cashier)
        first.refresh_from_db()
        self.assertEqual(first.status, 'partial')
        self.assertEqual(first.paid_date, date.today())
        self.assertEqual(result['remaining_for_entry'], first.emi_amount - Decimal('1000.00'))

        remainder = first.emi_amount - Decimal('1000.00')
        result = pay_installment(self.plan, 1, remainder + Decimal('200.00'), user=self.cashier)
        first.refresh_from_db()
        self.assertEqual(first.status, 'paid')
        self.assertEqual(first.actual_paid_amount, first.emi_amount)
        self.assertEqual(result['overpayment'], Decimal('200.00'))

        credit = CreditRegisterEntry.objects.get(customer=self.customer)
        self.assertEqual(credit.reference_type, 'partial_installment_payment')

    def test_overpayment_credited_to_customer_register(self):
        first = self.entries[0]

        result = pay_installment(self.plan, 1, first.emi_amount + Decimal('500.00'), user=self.cashier)

        self.assertEqual(result['overpayment'], Decimal('500.00'))
        credit = CreditRegisterEntry.objects.get(customer=self.customer)
        self.assertEqual(credit.transaction_type, 'credit')
        self.assertEqual(credit.amount, Decimal('500.00'))
        self.assertEqual(credit.reference_type, 'installment_payment')
        self.assertEqual(credit.reference_id, str(self.plan.id))
        self.assertEqual(credit.created_by, self.cashier)
        self.assertEqual(self.customer.available_credit, Decimal('500.00'))

    def test_credit_balance_applied_to_next_entries_in_order(self):
        first = self.entries[0]
        emi = first.emi_amount
        self.seeder.add_credit(self.customer, emi * 2 + Decimal('10.00'))

        result = pay_installment(self.plan, 1, emi, use_credit_balance=True, user=self.cashier)

        statuses = list(self.plan.schedule.order_by('installment_number').values_list('status', flat=True))
        self.assertEqual(statuses[:4], ['paid', 'paid', 'paid', 'partial'])
        self.assertEqual(result['credit_applied'], emi * 2 + Decimal('10.00'))

        fourth = RepaymentEntry.objects.get(plan=self.plan, installment_number=4)
        self.assertEqual(fourth.credit_adjusted_amount, Decimal('10.00'))
        self.assertEqual(self.customer.available_credit, Decimal('0.00'))
        self.assertEqual(
            CreditRegisterEntry.objects.filter(customer=self.customer, transaction_type='debit').count(), 3
        )

        self.plan.refresh_from_db()
        self.assertEqual(self.plan.paid_installments, 3)

    def test_credit_that_partly_covers_an_entry_is_a_partial_debit(self):
        emi = self.entries[0].emi_amount
        self.seeder.add_credit(self.customer, emi + Decimal('25.00'))

        pay_installment(self.plan, 1, emi, use_credit_balance=True, user=self.cashier)

        debits = CreditRegisterEntry.objects.filter(
            customer=self.customer, transaction_type='debit'
        ).order_by('amount')
        self.assertEqual(
            [(d.amount, d.reference_type) for d in debits],
            [(Decimal('25.00'), 'partial_installment_payment'), (emi, 'installment_payment')]
        )
        third = RepaymentEntry.objects.get(plan=self.plan, installment_number=3)
        self.assertEqual(third.status, 'partial')
        self.assertEqual(third.paid_date, date.today())

    def test_overpayment_is_spent_when_credit_balance_requested(self):
        first = self.entries[0]

        pay_installment(self.plan, 1, first.emi_amount + Decimal('300.00'), use_credit_balance=True)

        second = RepaymentEntry.objects.get(plan=self.plan, installment_number=2)
        self.assertEqual(second.status, 'partial')
        self.assertEqual(second.credit_adjusted_amount, Decimal('300.00'))
        self.assertEqual(self.customer.available_credit, Decimal('0.00'))

    def test_paying_every_entry_completes_plan(self):
        for entry in self.entries:
            pay_installment(self.plan, entry.installment_number, entry.emi_amount)

        self.plan.refresh_from_db()
        self.assertEqual(self.plan.status, 'completed')
        self.assertEqual(self.plan.paid_installments, 6)
        self.assertEqual(self.plan.remaining_installments, 0)
        self.assertIsNone(self.plan.next_due_date)

    def test_paid_entry_cannot_be_paid_again(self):
        pay_installment(self.plan, 1, self.entries[0].emi_amount)

        with self.assertRaises(ValidationError):
            pay_installment(self.plan, 1, Decimal('100.00'))

    def test_inactive_plan_rejects_payment(self):
        InstallmentPlan.objects.filter(id=self.plan.id).update(status='cancelled')

        with self.assertRaises(ValidationError):
            pay_installment(self.plan, 1, Decimal('100.00'))

    def test_unknown_installment_rejected(self):
        with self.assertRaises(ValidationError):
            pay_installment(self.plan, 99, Decimal('100.00'))

    def test_plan_summary(self):
        pay_installment(self.plan, 1, self.entries[0].emi_amount)
        pay_installment(self.plan, 2, Decimal('100.00'))

        summary = get_plan_summary(self.plan)

        self.assertEqual(summary['total_installments'], 6)
        self.assertEqual(summary['paid_installments'], 1)
        self.assertEqual(summary['partial_installments'], 1)
        self.assertEqual(summary['amount_paid'], self.entries[0].emi_amount + Decimal('100.00'))
        self.assertEqual(summary['next_due_date'], self.entries[1].due_date)


class InstallmentAPITestCase(APITestCase):

    def setUp(self):
        self.seeder = TestDataSeeder()
        self.manager = self.seeder.create_manager()
        self.cashier = self.seeder.create_cashier()
        self.customer = self.seeder.create_customer()
        self.product = self.seeder.create_product(price=Decimal('120000.00'), quantity=2)

    def authenticate_user(self, user):
        token = RefreshToken.for_user(user).access_token
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

    def plan_payload(self, **overrides):
        payload = {
            'customer': self.customer.id,
            'product': self.product.id,
            'down_payment': '20000.00',
            'interest_rate': '12.00',
            'tenure': 6,
            'tenor_type': 'month',
            'start_date': date.today().isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_unauthenticated_access_rejected(self):
        response = self.client.get(reverse('installmentplan-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_plan_builds_schedule_and_consumes_stock(self):
        self.authenticate_user(self.cashier)

        response = self.client.post(reverse('installmentplan-list'), self.plan_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['financed_amount'], '100000.00')
        self.assertEqual(response.data['product_price'], '120000.00')
        self.assertEqual(response.data['status'], 'active')
        self.assertEqual(len(response.data['schedule']), 6)
        self.assertEqual(response.data['schedule'][-1]['balance'], '0.00')
        self.assertEqual(response.data['remaining_installments'], 6)
        self.assertEqual(
            Decimal(response.data['total_payable']) - Decimal(response.data['financed_amount']),
            Decimal(response.data['total_interest'])
        )

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 1)
        plan = InstallmentPlan.objects.get(id=response.data['id'])
        self.assertEqual(plan.created_by, self.cashier)

    @override_settings(DEFAULT_INTEREST_RATE=0.0)
    def test_create_plan_uses_default_rate(self):
        self.authenticate_user(self.cashier)
        payload = self.plan_payload(tenure=4)
        del payload['interest_rate']

        response = self.client.post(reverse('installmentplan-list'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['interest_rate'], '0.00')
        self.assertEqual(response.data['emi_amount'], '25000.00')

    def test_create_plan_validation_errors(self):
        self.authenticate_user(self.cashier)
        guarantor = self.seeder.create_guarantor()
        empty = self.seeder.create_product(quantity=0)
        url = reverse('installmentplan-list')

        cases = [
            self.plan_payload(customer=guarantor.id),
            self.plan_payload(product=empty.id),
            self.plan_payload(down_payment='120000.00'),
            self.plan_payload(tenure=0),
            self.plan_payload(tenure=1000),
            self.plan_payload(interest_rate='150.00'),
        ]
        for payload in cases:
            response = self.client.post(url, payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, payload)

        self.assertEqual(InstallmentPlan.objects.count(), 0)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 2)

    def test_preview_writes_nothing(self):
        self.authenticate_user(self.cashier)

        response = self.client.post(reverse('installment_preview'), {
            'product_price': '120000.00',
            'down_payment': '20000.00',
            'interest_rate': '12.00',
            'tenure': 12,
            'start_date': '2024-01-31',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['financed_amount'], Decimal('100000.00'))
        self.assertEqual(response.data['emi_amount'], Decimal('8884.88'))
        self.assertEqual(len(response.data['schedule']), 12)
        self.assertEqual(response.data['schedule'][0]['due_date'], date(2024, 2, 29))
        self.assertEqual(response.data['schedule'][-1]['balance'], Decimal('0.00'))
        self.assertEqual(InstallmentPlan.objects.count(), 0)

    def test_preview_rejects_unfinanceable_terms(self):
        self.authenticate_user(self.cashier)

        response = self.client.post(reverse('installment_preview'), {
            'product_price': '1000.00',
            'down_payment': '1000.00',
            'tenure': 3,
            'start_date': '2024-01-01',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_list_filters_by_status(self):
        self.seeder.create_plan(customer=self.customer)
        self.seeder.create_plan(status='cancelled')
        self.authenticate_user(self.cashier)

        response = self.client.get(reverse('installmentplan-list'), {'status': 'active'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['customer'], self.customer.id)

    def test_pay_endpoint(self):
        plan = self.seeder.create_plan(customer=self.customer)
        emi = plan.schedule.get(installment_number=1).emi_amount
        self.authenticate_user(self.cashier)
        url = reverse('installmentplan-pay', kwargs={'pk': plan.id})

        response = self.client.post(url, {'installment_number': 1, 'amount': str(emi)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Payment processed successfully')
        self.assertEqual(response.data['status'], 'paid')

        response = self.client.post(url, {'installment_number': 2, 'amount': '100.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'partial')
        self.assertTrue(response.data['message'].startswith('Partial payment recorded'))

        response = self.client.post(url, {'installment_number': 1, 'amount': '100.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('already been paid', response.data['error'])

    def test_pay_endpoint_validates_amount(self):
        plan = self.seeder.create_plan(customer=self.customer)
        self.authenticate_user(self.cashier)

        response = self.client.post(
            reverse('installmentplan-pay', kwargs={'pk': plan.id}),
            {'installment_number': 1, 'amount': '0'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_requires_manager(self):
        plan = self.seeder.create_plan(customer=self.customer)
        url = reverse('installmentplan-detail', kwargs={'pk': plan.id})

        self.authenticate_user(self.cashier)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.authenticate_user(self.manager)
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')

        plan.refresh_from_db()
        self.assertEqual(plan.status, 'cancelled')
        self.assertEqual(plan.schedule.count(), 6)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_defaulted(self):
        plan = self.seeder.create_plan(customer=self.customer)
        url = reverse('installmentplan-mark-defaulted', kwargs={'pk': plan.id})

        self.authenticate_user(self.cashier)
        self.assertEqual(self.client.post(url).status_code, status.HTTP_403_FORBIDDEN)

        self.authenticate_user(self.manager)
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'defaulted')

        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_summary_endpoint(self):
        plan = self.seeder.create_plan(customer=self.customer)
        self.authenticate_user(self.cashier)

        response = self.client.get(reverse('installmentplan-summary', kwargs={'pk': plan.id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_installments'], 6)
        self.assertEqual(response.data['paid_installments'], 0)

    def test_refresh_statuses_endpoint_manager_only(self):
        url = reverse('refresh_repayment_statuses')

        self.authenticate_user(self.cashier)
        self.assertEqual(self.client.post(url).status_code, status.HTTP_403_FORBIDDEN)

        self.authenticate_user(self.manager)
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('updated_entries', response.data)


class GuarantorAPITestCase(APITestCase):

    def setUp(self):
        self.seeder = TestDataSeeder()
        self.cashier = self.seeder.create_cashier()
        self.plan = self.seeder.create_plan()
        token = RefreshToken.for_user(self.cashier).access_token
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        self.list_url = reverse('installmentplan-guarantors', kwargs={'pk': self.plan.id})

    def test_add_new_guarantor_creates_party(self):
        response = self.client.post(self.list_url, {
            'full_name': 'Ali Raza',
            'guardian_name': 'Raza Khan',
            'phone': '03001234567',
            'national_id': '35202-1234567-1',
            'relationship': 'Brother',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['party_detail']['full_name'], 'Ali Raza')
        self.assertEqual(response.data['relationship'], 'Brother')

        party = Party.objects.get(full_name='Ali Raza')
        self.assertEqual(party.role, 'guarantor')
        self.assertTrue(PlanGuarantor.objects.filter(plan=self.plan, party=party).exists())

    def test_add_existing_party_once(self):
        party = self.seeder.create_guarantor()

        response = self.client.post(self.list_url, {'party': party.id, 'relationship': 'Friend'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post(self.list_url, {'party': party.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_guarantor_needs_party_or_name(self):
        response = self.client.post(self.list_url, {'relationship': 'Uncle'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_update_and_remove_guarantor(self):
        link = self.seeder.add_guarantor(self.plan)
        detail_url = reverse(
            'installmentplan-guarantor-detail', kwargs={'pk': self.plan.id, 'guarantor_id': link.id}
        )

        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        response = self.client.patch(detail_url, {'full_name': 'Renamed', 'relationship': 'Cousin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        link.refresh_from_db()
        link.party.refresh_from_db()
        self.assertEqual(link.party.full_name, 'Renamed')
        self.assertEqual(link.relationship, 'Cousin')

        response = self.client.delete(detail_url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PlanGuarantor.objects.filter(id=link.id).exists())
        self.assertTrue(Party.objects.filter(id=link.party_id).exists())


class SeederScenarioTestCase(TestCase):

    def test_basic_plan_scenario(self):
        seeder = TestDataSeeder()

        data = seeder.create_test_scenario('basic_plan')

        self.assertEqual(len(data['entries']), 6)
        self.assertEqual(data['plan'].created_by, data['cashier'])
        summary = seeder.get_summary()
        self.assertEqual(summary['plans_created'], 1)
        self.assertEqual(summary['managers'], [data['manager']])
        self.assertEqual(summary['cashiers'], [data['cashier']])

    def test_unknown_scenario(self):
        with self.assertRaises(ValueError):
            TestDataSeeder().create_test_scenario('no_such_scenario')
