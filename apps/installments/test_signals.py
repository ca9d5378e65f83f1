from django.test import TestCase, override_settings
from decimal import Decimal
from datetime import date, timedelta

from .models import InstallmentPlan, RepaymentEntry
from .signals import (
    get_overdue_entries_report,
    mark_all_overdue_entries,
    mark_defaulted_plans,
    refresh_statuses,
)
from .test_data_seeder import TestDataSeeder


class RepaymentStatusSignalsTestCase(TestCase):
    """Time-based status changes and plan bookkeeping driven by signals"""

    def setUp(self):
        self.seeder = TestDataSeeder()
        self.start = date(2024, 1, 10)
        self.plan = self.seeder.create_plan(
            start_date=self.start, tenure=4, today=self.start
        )

    def test_entries_reclassified_for_date(self):
        counts = mark_all_overdue_entries(today=date(2024, 3, 20))

        statuses = list(self.plan.schedule.values_list('status', flat=True))
        self.assertEqual(statuses, ['overdue', 'overdue', 'upcoming', 'upcoming'])
        self.assertEqual(counts['overdue'], 2)

    def test_entry_is_due_on_its_due_date(self):
        mark_all_overdue_entries(today=date(2024, 2, 10))

        first = self.plan.schedule.get(installment_number=1)
        self.assertEqual(first.status, 'due')

    @override_settings(GRACE_PERIOD_DAYS=5)
    def test_grace_period_delays_overdue(self):
        mark_all_overdue_entries(today=date(2024, 2, 14))
        self.assertEqual(self.plan.schedule.get(installment_number=1).status, 'due')

        mark_all_overdue_entries(today=date(2024, 2, 16))
        self.assertEqual(self.plan.schedule.get(installment_number=1).status, 'overdue')

    def test_settled_entries_are_not_reclassified(self):
        RepaymentEntry.objects.filter(plan=self.plan, installment_number=1).update(
            status='partial', actual_paid_amount=Decimal('100.00')
        )

        mark_all_overdue_entries(today=date(2024, 6, 1))

        self.assertEqual(self.plan.schedule.get(installment_number=1).status, 'partial')

    def test_inactive_plans_are_skipped(self):
        InstallmentPlan.objects.filter(id=self.plan.id).update(status='cancelled')

        counts = mark_all_overdue_entries(today=date(2024, 6, 1))

        self.assertEqual(sum(counts.values()), 0)
        self.assertEqual(self.plan.schedule.filter(status='upcoming').count(), 4)

    def test_overdue_detected_when_entry_saved(self):
        entry = self.plan.schedule.get(installment_number=1)
        entry.save()

        entry.refresh_from_db()
        # the seeded due dates are long past
        self.assertEqual(entry.status, 'overdue')

    @override_settings(DEFAULTED_AFTER_MISSED_INSTALLMENTS=3)
    def test_plan_defaulted_after_missed_installments(self):
        self.assertEqual(mark_defaulted_plans(today=date(2024, 4, 5)), [])

        defaulted = mark_defaulted_plans(today=date(2024, 4, 20))

        self.assertEqual(defaulted, [self.plan.id])
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.status, 'defaulted')

    @override_settings(DEFAULTED_AFTER_MISSED_INSTALLMENTS=0)
    def test_automatic_defaulting_can_be_disabled(self):
        self.assertEqual(mark_defaulted_plans(today=date(2025, 1, 1)), [])

    def test_refresh_statuses_combines_both_steps(self):
        result = refresh_statuses(today=date(2024, 4, 20))

        self.assertEqual(result['updated_entries'], 3)
        self.assertEqual(result['defaulted_plans'], [self.plan.id])
        self.assertEqual(result['run_date'], date(2024, 4, 20))

    def test_entry_save_updates_plan_stats(self):
        entry = self.plan.schedule.get(installment_number=1)
        entry.status = 'paid'
        entry.actual_paid_amount = entry.emi_amount
        entry.paid_date = date(2024, 2, 10)
        entry.save()

        self.plan.refresh_from_db()
        self.assertEqual(self.plan.paid_installments, 1)
        self.assertEqual(self.plan.remaining_installments, 3)
        self.assertEqual(self.plan.next_due_date, date(2024, 3, 10))

    def test_overdue_report_groups_by_plan(self):
        other = self.seeder.create_plan(start_date=self.start, tenure=2, today=self.start)
        self.seeder.settle_entries(other, 2)

        report = get_overdue_entries_report(today=date(2024, 3, 20))

        self.assertEqual(report['overdue_count'], 2)
        self.assertEqual(list(report['overdue_plans'].keys()), [self.plan.id])
        self.assertEqual(len(report['overdue_plans'][self.plan.id]['overdue_entries']), 2)


class OverdueScenarioTestCase(TestCase):

    def test_seeded_overdue_plan_defaults_on_refresh(self):
        data = TestDataSeeder().create_test_scenario('overdue_plan')
        plan = data['plan']

        with self.settings(DEFAULTED_AFTER_MISSED_INSTALLMENTS=3):
            refresh_statuses()

        plan.refresh_from_db()
        self.assertEqual(plan.status, 'defaulted')
        self.assertEqual(plan.paid_installments, 1)
