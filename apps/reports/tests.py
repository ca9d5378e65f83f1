from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from decimal import Decimal
from datetime import date

from apps.installments.models import InstallmentPlan, RepaymentEntry
from apps.installments.test_data_seeder import BaseTestWithSeeder, TestDataSeeder
from apps.installments.utils import pay_installment
from . import services

TODAY = date(2024, 5, 25)


class ReportBookMixin:
    """
    A small book judged on 2024-05-25:

    - ``behind``: monthly plan from 2024-01-10, #1 paid on time, #2 paid ten
      days late, #3 and #4 overdue by 45 and 15 days
    - ``current``: monthly plan from 2024-05-01, nothing due yet
    - ``cancelled``: cancelled plan, ignored by the collection reports
    """

    def build_book(self):
        self.seeder = TestDataSeeder()
        self.customer = self.seeder.create_customer(full_name='Bilal Ahmed')
        self.behind = self.seeder.create_plan(
            customer=self.customer, start_date=date(2024, 1, 10), tenure=4, today=TODAY
        )
        self.seeder.settle_entries(self.behind, 2)
        RepaymentEntry.objects.filter(plan=self.behind, installment_number=2).update(
            paid_date=date(2024, 3, 20)
        )
        self.current = self.seeder.create_plan(start_date=date(2024, 5, 1), tenure=3, today=TODAY)
        self.cancelled = self.seeder.create_plan(
            start_date=date(2024, 1, 10), tenure=4, status='cancelled', today=TODAY
        )
        self.entries = {e.installment_number: e for e in self.behind.schedule.all()}


class CollectionReportTestCase(ReportBookMixin, TestCase):

    def setUp(self):
        self.build_book()

    def test_collection_counts(self):
        report = services.installment_collection_report(today=TODAY)

        self.assertEqual(report['total_collected'], 2)
        self.assertEqual(report['late_payments'], 2)
        self.assertEqual(report['pending_count'], 0)
        self.assertEqual(report['total_installments_due'], 4)
        self.assertEqual(
            report['late_amount'],
            self.entries[3].emi_amount + self.entries[4].emi_amount
        )
        self.assertEqual(
            report['total_amount_collected'],
            self.entries[1].emi_amount + self.entries[2].emi_amount
        )

    def test_collection_by_date_is_newest_first(self):
        report = services.installment_collection_report(today=TODAY)

        dates = [row['date'] for row in report['collection_by_date']]
        self.assertEqual(dates, [date(2024, 3, 20), date(2024, 2, 10)])

    def test_date_range_limits_collections(self):
        report = services.installment_collection_report(
            date(2024, 3, 1), date(2024, 3, 31), today=TODAY
        )

        self.assertEqual(report['total_collected'], 1)
        self.assertEqual(report['total_amount_collected'], self.entries[2].emi_amount)

    def test_entry_on_its_due_date_is_pending(self):
        report = services.installment_collection_report(today=date(2024, 6, 1))

        self.assertEqual(report['pending_count'], 1)


class OutstandingAndDefaultersTestCase(ReportBookMixin, TestCase):

    def setUp(self):
        self.build_book()

    def test_aging_buckets(self):
        report = services.outstanding_balance_report(today=TODAY)

        aging = report['aging']
        self.assertEqual(aging['0_30']['count'], 1)
        self.assertEqual(aging['0_30']['amount'], self.entries[4].emi_amount)
        self.assertEqual(aging['31_60']['count'], 1)
        self.assertEqual(aging['31_60']['amount'], self.entries[3].emi_amount)
        self.assertEqual(aging['61_90']['count'], 0)
        self.assertEqual(aging['90_plus']['count'], 0)

    def test_outstanding_rows_worst_first(self):
        report = services.outstanding_balance_report(today=TODAY)

        self.assertEqual(report['total_customers'], 2)
        first = report['plans'][0]
        self.assertEqual(first['plan_id'], self.behind.id)
        self.assertEqual(first['max_days_overdue'], 45)
        self.assertEqual(report['total_outstanding'], self.behind.outstanding_amount + self.current.outstanding_amount)

    def test_defaulters(self):
        report = services.defaulters_report(today=TODAY)

        self.assertEqual(report['total_defaulters'], 1)
        row = report['defaulters'][0]
        self.assertEqual(row['customer_name'], 'Bilal Ahmed')
        self.assertEqual(row['missed_installments'], 2)
        self.assertEqual(row['max_days_overdue'], 45)
        self.assertEqual(row['last_paid_date'], date(2024, 3, 20))

    @override_settings(GRACE_PERIOD_DAYS=20)
    def test_grace_period_keeps_recent_entry_off_the_list(self):
        report = services.defaulters_report(today=TODAY)

        self.assertEqual(report['defaulters'][0]['missed_installments'], 1)

    def test_default_rate(self):
        report = services.default_rate_report(today=TODAY)

        self.assertEqual(report['total_financed_plans'], 2)
        self.assertEqual(report['number_of_defaulters'], 1)
        self.assertEqual(report['default_percentage'], Decimal('50.00'))
        self.assertEqual(report['monthly_trend'][0]['default_rate'], Decimal('50.00'))


class DueAndLateFeeReportTestCase(ReportBookMixin, TestCase):

    def setUp(self):
        self.build_book()

    def test_due_today_includes_overdue(self):
        report = services.due_today_report(today=date(2024, 6, 1))

        self.assertEqual(report['total_due'], 3)
        plan_ids = {item['plan_id'] for item in report['items']}
        self.assertEqual(plan_ids, {self.behind.id, self.current.id})
        self.assertEqual(report['items'][-1]['status'], 'due')

    def test_upcoming_window_is_inclusive(self):
        report = services.upcoming_due_report(days=7, today=TODAY)

        self.assertEqual(report['total_upcoming'], 1)
        self.assertEqual(report['items'][0]['due_date'], date(2024, 6, 1))

        self.assertEqual(services.upcoming_due_report(days=6, today=TODAY)['total_upcoming'], 0)

    def test_late_fee_formula(self):
        self.assertEqual(
            services.calculate_late_fee(Decimal('1000.00'), 10), Decimal('100.00')
        )
        self.assertEqual(
            services.calculate_late_fee(Decimal('1000.00'), 45), Decimal('300.00')
        )
        self.assertEqual(services.calculate_late_fee(Decimal('1000.00'), 0), Decimal('0.00'))

    @override_settings(LATE_FEE_DAILY_RATE='0.02', LATE_FEE_MAX_DAYS=10)
    def test_late_fee_settings(self):
        self.assertEqual(
            services.calculate_late_fee(Decimal('1000.00'), 45), Decimal('200.00')
        )

    def test_late_fee_report(self):
        report = services.late_fee_report(today=TODAY)

        self.assertEqual(report['total_late_entries'], 3)
        by_number = {item['installment_number']: item for item in report['items']}
        self.assertEqual(by_number[2]['days_late'], 10)
        self.assertTrue(by_number[2]['is_paid'])
        self.assertEqual(by_number[3]['days_late'], 45)
        self.assertEqual(
            report['paid_late_fees'],
            services.calculate_late_fee(self.entries[2].emi_amount, 10)
        )
        self.assertEqual(
            report['unpaid_late_fees'],
            services.calculate_late_fee(self.entries[3].emi_amount, 45)
            + services.calculate_late_fee(self.entries[4].emi_amount, 15)
        )


class FinancialReportTestCase(ReportBookMixin, TestCase):

    def setUp(self):
        self.build_book()

    def test_profit_and_loss(self):
        report = services.profit_and_loss_report()

        paid = [self.entries[1], self.entries[2]]
        self.assertEqual(report['interest_earned'], sum(e.interest_component for e in paid))
        self.assertEqual(report['total_sales'], Decimal('240000.00'))
        self.assertEqual(
            report['total_collected'],
            sum(e.emi_amount for e in paid) + Decimal('40000.00')
        )
        self.assertEqual(report['bad_debts'], Decimal('0.00'))
        self.assertEqual([m['month'] for m in report['monthly_breakdown']], ['2024-02', '2024-03'])

    def test_interest_earned_capped_at_amount_paid(self):
        RepaymentEntry.objects.filter(id=self.entries[3].id).update(
            status='partial', actual_paid_amount=Decimal('100.00'), paid_date=date(2024, 4, 10)
        )

        report = services.profit_and_loss_report(date(2024, 4, 1), date(2024, 4, 30))

        self.assertEqual(report['interest_earned'], Decimal('100.00'))

    def test_bad_debts_from_defaulted_plans(self):
        InstallmentPlan.objects.filter(id=self.behind.id).update(status='defaulted')

        report = services.profit_and_loss_report()

        expected = self.behind.total_payable - self.entries[1].emi_amount - self.entries[2].emi_amount
        self.assertEqual(report['bad_debts'], expected)
        self.assertEqual(report['net_profit'], report['gross_revenue'] - expected)

    def test_customer_ledger_running_balance(self):
        ledger = services.customer_ledger(self.customer)

        types = [row['type'] for row in ledger['transactions']]
        self.assertEqual(types, ['Purchase', 'Down Payment', 'Installment', 'Installment'])
        self.assertEqual(
            ledger['transactions'][0]['debit'],
            self.behind.down_payment + self.behind.total_payable
        )
        self.assertEqual(ledger['transactions'][-1]['running_balance'], ledger['remaining_balance'])
        self.assertEqual(
            ledger['remaining_balance'],
            self.behind.total_payable - self.entries[1].emi_amount - self.entries[2].emi_amount
        )

    def test_partial_payment_counts_as_collected(self):
        pay_installment(self.current, 1, Decimal('5000.00'), today=date(2024, 5, 20))
        may = (date(2024, 5, 1), date(2024, 5, 31))

        collections = services.installment_collection_report(*may, today=TODAY)
        self.assertEqual(collections['total_collected'], 1)
        self.assertEqual(collections['total_amount_collected'], Decimal('5000.00'))

        history = services.payment_history_report(date_from=may[0], date_to=may[1])
        self.assertEqual(history['total_payments'], 1)
        self.assertEqual(history['payments'][0]['amount'], Decimal('5000.00'))
        self.assertEqual(history['payments'][0]['status'], 'partial')
        self.assertEqual(history['payments'][0]['paid_date'], date(2024, 5, 20))

        pnl = services.profit_and_loss_report(*may)
        self.assertEqual(
            pnl['monthly_breakdown'][0]['collections'], Decimal('5000.00')
        )
        self.assertEqual(
            pnl['total_collected'] - pnl['total_down_payments'], Decimal('5000.00')
        )

    def test_payment_history_customer_filter(self):
        self.seeder.settle_entries(self.current, 1)

        everyone = services.payment_history_report()
        one = services.payment_history_report(customer_id=self.customer.id)

        self.assertEqual(everyone['total_payments'], 3)
        self.assertEqual(one['total_payments'], 2)
        self.assertEqual(one['payments'][0]['paid_date'], date(2024, 3, 20))

    def test_sales_summary(self):
        report = services.installment_sales_summary()

        self.assertEqual(report['total_contracts'], 3)
        self.assertEqual(report['contracts_by_status']['active'], 2)
        self.assertEqual(report['contracts_by_status']['cancelled'], 1)
        tenures = {(row['tenure'], row['tenor_type']): row['count'] for row in report['tenure_breakdown']}
        self.assertEqual(tenures, {(3, 'month'): 1, (4, 'month'): 2})

    def test_sales_summary_range_excludes_plans(self):
        report = services.installment_sales_summary(date(2000, 1, 1), date(2000, 12, 31))

        self.assertEqual(report['total_contracts'], 0)

    def test_product_profit_is_interest_without_finance_override(self):
        report = services.product_profit_report()

        for row in report['plans']:
            self.assertEqual(row['profit'], row['interest_earned'])
        self.assertEqual(report['total_plans'], 3)


class ReportAPITestCase(ReportBookMixin, APITestCase):

    def setUp(self):
        self.build_book()
        self.manager = self.seeder.create_manager()
        self.authenticate(self.manager)

    def authenticate(self, user):
        token = RefreshToken.for_user(user).access_token
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

    def test_manager_reads_reports(self):
        for name in ('report_collections', 'report_outstanding', 'report_profit_loss',
                     'report_defaulters', 'report_payment_history', 'report_sales_summary',
                     'report_default_rate', 'report_due_today', 'report_upcoming_due',
                     'report_late_fees', 'report_product_profit'):
            response = self.client.get(reverse(name), {'today': '2024-05-25'})
            self.assertEqual(response.status_code, status.HTTP_200_OK, name)

    def test_cashier_is_forbidden(self):
        self.authenticate(self.seeder.create_cashier())

        response = self.client.get(reverse('report_defaulters'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_date_range_params(self):
        response = self.client.get(
            reverse('report_collections'),
            {'from': '2024-03-01', 'to': '2024-03-31', 'today': '2024-05-25'}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_collected'], 1)

    def test_inverted_date_range_rejected(self):
        response = self.client.get(reverse('report_sales_summary'), {'from': '2024-03-31', 'to': '2024-03-01'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upcoming_days_param(self):
        response = self.client.get(reverse('report_upcoming_due'), {'days': 7, 'today': '2024-05-25'})

        self.assertEqual(response.data['total_upcoming'], 1)

    def test_customer_ledger(self):
        response = self.client.get(reverse('report_customer_ledger', args=[self.customer.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer_name'], 'Bilal Ahmed')

    def test_customer_ledger_unknown_customer(self):
        response = self.client.get(reverse('report_customer_ledger', args=[999999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class MixedBookReportTestCase(BaseTestWithSeeder, TestCase):
    """One plan in each status"""

    def seed_test_data(self):
        self.book = self.seeder.create_test_scenario('mixed_book')

    def test_sales_summary_counts_each_status(self):
        report = services.installment_sales_summary()

        for plan_status in ('active', 'completed', 'defaulted', 'cancelled'):
            self.assertEqual(report['contracts_by_status'][plan_status], 1, plan_status)

    def test_bad_debts_are_the_unpaid_defaulted_plan(self):
        report = services.profit_and_loss_report()

        self.assertEqual(report['bad_debts'], self.book['defaulted'].total_payable)

    def test_default_rate_ignores_cancelled_plans(self):
        report = services.default_rate_report()

        self.assertEqual(report['total_financed_plans'], 3)
        self.assertEqual(report['number_of_defaulters'], 1)

    def test_outstanding_only_covers_active_plans(self):
        report = services.outstanding_balance_report()

        self.assertEqual([row['plan_id'] for row in report['plans']], [self.book['active'].id])
