from django.test import TestCase, override_settings
from django.core import mail
from django.core.management import call_command
from django.core.management.base import CommandError
from unittest.mock import patch, Mock
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

from .models import RepaymentEntry
from .tasks import (
    create_reminder_message,
    daily_due_reminders,
    refresh_repayment_statuses,
    send_bulk_due_reminders,
    send_due_reminder,
    send_overdue_reminders,
)
from .test_data_seeder import TestDataSeeder


@override_settings(CURRENCY='PKR', DEFAULT_FROM_EMAIL='installments@test.com')
class ReminderTaskTestCase(TestCase):
    """Reminder emails for individual entries"""

    def setUp(self):
        self.seeder = TestDataSeeder()
        self.customer = self.seeder.create_customer(full_name='Sana Tariq', email='sana@test.com')
        self.plan = self.seeder.create_plan(customer=self.customer)
        self.entry = self.plan.schedule.get(installment_number=1)

    def test_upcoming_reminder_sent(self):
        result = send_due_reminder(self.entry.id, 3)

        self.assertEqual(result['status'], 'sent')
        self.assertEqual(result['reminder_type'], 'upcoming')
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['sana@test.com'])
        self.assertEqual(message.from_email, 'installments@test.com')
        self.assertIn('Due in 3 Days', message.subject)
        self.assertIn('Sana Tariq', message.body)
        self.assertIn(f'{self.entry.emi_amount} PKR', message.body)

    def test_due_today_and_overdue_subjects(self):
        send_due_reminder(self.entry.id, 0)
        send_due_reminder(self.entry.id, -4)

        self.assertEqual(mail.outbox[0].subject, 'Installment Reminder: Due Today')
        self.assertIn('4 Days Late', mail.outbox[1].subject)

    def test_paid_entry_skipped(self):
        RepaymentEntry.objects.filter(id=self.entry.id).update(status='paid')

        result = send_due_reminder(self.entry.id, 3)

        self.assertEqual(result['status'], 'skipped')
        self.assertEqual(len(mail.outbox), 0)

    def test_customer_without_email_skipped(self):
        self.customer.email = ''
        self.customer.save()

        result = send_due_reminder(self.entry.id, 3)

        self.assertEqual(result['reason'], 'no email')
        self.assertEqual(len(mail.outbox), 0)

    def test_missing_entry_reported(self):
        result = send_due_reminder(999999, 3)
        self.assertIn('error', result)

    def test_message_shows_outstanding_after_partial_payment(self):
        RepaymentEntry.objects.filter(id=self.entry.id).update(
            status='partial', actual_paid_amount=Decimal('1000.00')
        )
        self.entry.refresh_from_db()

        body = create_reminder_message(self.entry, 2, 'upcoming')

        self.assertIn(f'{self.entry.emi_amount - Decimal("1000.00")} PKR', body)
        self.assertIn('of 6', body)


class BatchReminderTaskTestCase(TestCase):
    """Batch tasks queue one reminder per matching entry"""

    def setUp(self):
        self.seeder = TestDataSeeder()
        # daily tenor: entry n falls due n days from today
        self.plan = self.seeder.create_plan(tenor_type='day', tenure=5, interest_rate=Decimal('0'))

    @patch('apps.installments.tasks.send_due_reminder.delay')
    def test_bulk_reminders_for_target_date(self, mock_delay):
        mock_delay.return_value = Mock(id='task-1')
        entry = self.plan.schedule.get(installment_number=3)

        result = send_bulk_due_reminders(3)

        self.assertEqual(result['reminders_sent'], 1)
        self.assertEqual(result['target_date'], str(date.today() + timedelta(days=3)))
        mock_delay.assert_called_once_with(entry.id, 3)

    @patch('apps.installments.tasks.send_due_reminder.delay')
    def test_bulk_reminders_skip_inactive_plans(self, mock_delay):
        self.plan.status = 'cancelled'
        self.plan.save()

        result = send_bulk_due_reminders(3)

        self.assertEqual(result['reminders_sent'], 0)
        mock_delay.assert_not_called()

    @patch('apps.installments.tasks.send_due_reminder.delay')
    def test_daily_batch_totals(self, mock_delay):
        mock_delay.return_value = Mock(id='task-1')

        result = daily_due_reminders()

        # 3-day and 1-day entries exist, nothing is due today or overdue
        self.assertEqual(result['total_reminders_sent'], 2)
        self.assertEqual(result['details']['0_day_reminders']['reminders_sent'], 0)
        self.assertEqual(result['details']['overdue_reminders']['overdue_reminders_sent'], 0)
        self.assertEqual(mock_delay.call_count, 2)

    @override_settings(DEFAULTED_AFTER_MISSED_INSTALLMENTS=0)
    @patch('apps.installments.tasks.send_due_reminder.delay')
    def test_overdue_reminders_after_refresh(self, mock_delay):
        mock_delay.return_value = Mock(id='task-1')
        self.seeder.create_test_scenario('overdue_plan')

        result = send_overdue_reminders()

        self.assertEqual(result['overdue_reminders_sent'], 3)
        for call in mock_delay.call_args_list:
            self.assertLess(call.args[1], 0)

    def test_refresh_task_result_is_serializable(self):
        result = refresh_repayment_statuses()

        self.assertEqual(result['run_date'], str(date.today()))
        self.assertIn('status_counts', result)


class ManagementCommandTestCase(TestCase):

    def setUp(self):
        self.seeder = TestDataSeeder()
        self.data = self.seeder.create_test_scenario('overdue_plan')

    def test_refresh_report_only_changes_nothing(self):
        out = StringIO()

        call_command('refresh_repayment_statuses', '--report-only', '--verbose', stdout=out)

        output = out.getvalue()
        self.assertIn('OVERDUE INSTALLMENTS REPORT', output)
        self.assertIn('Overdue Entries: 3', output)
        self.data['plan'].refresh_from_db()
        self.assertEqual(self.data['plan'].status, 'active')

    def test_refresh_dry_run_lists_changes(self):
        out = StringIO()
        RepaymentEntry.objects.filter(plan=self.data['plan']).exclude(status='paid').update(status='upcoming')

        call_command('refresh_repayment_statuses', '--dry-run', stdout=out)

        self.assertIn('DRY RUN: Would update', out.getvalue())
        self.assertFalse(RepaymentEntry.objects.filter(plan=self.data['plan'], status='overdue').exists())

    @override_settings(DEFAULTED_AFTER_MISSED_INSTALLMENTS=3)
    def test_refresh_defaults_plan(self):
        out = StringIO()

        call_command('refresh_repayment_statuses', stdout=out)

        self.assertIn('Marked 1 plans as defaulted', out.getvalue())
        self.data['plan'].refresh_from_db()
        self.assertEqual(self.data['plan'].status, 'defaulted')

    def test_refresh_rejects_bad_date(self):
        with self.assertRaises(CommandError):
            call_command('refresh_repayment_statuses', '--date', '20-01-2024', stdout=StringIO())

    def test_reminders_dry_run(self):
        out = StringIO()

        call_command('send_due_reminders', '--daily-batch', '--dry-run', stdout=out)

        self.assertIn('DRY RUN: Would send', out.getvalue())
        self.assertEqual(len(mail.outbox), 0)

    def test_reminder_for_missing_entry(self):
        with self.assertRaises(CommandError):
            call_command('send_due_reminders', '--entry-id', '999999', stdout=StringIO())

    def test_single_reminder_sent_synchronously(self):
        entry = self.data['plan'].schedule.exclude(status='paid').first()
        out = StringIO()

        call_command('send_due_reminders', '--entry-id', str(entry.id), stdout=out)

        self.assertIn("'status': 'sent'", out.getvalue())
        self.assertEqual(len(mail.outbox), 1)

    def test_single_reminder_dry_run_sends_nothing(self):
        entry = self.data['plan'].schedule.exclude(status='paid').first()
        out = StringIO()

        call_command('send_due_reminders', '--entry-id', str(entry.id), '--dry-run', stdout=out)

        self.assertIn('DRY RUN: Would send 1 reminder', out.getvalue())
        self.assertEqual(len(mail.outbox), 0)

    @patch('apps.installments.management.commands.send_due_reminders.send_bulk_due_reminders')
    @patch('apps.installments.management.commands.send_due_reminders.send_overdue_reminders')
    def test_overdue_only_runs_just_the_overdue_window(self, mock_overdue, mock_bulk):
        mock_overdue.return_value = {'overdue_reminders_sent': 2}
        out = StringIO()

        call_command('send_due_reminders', '--overdue-only', stdout=out)

        mock_overdue.assert_called_once_with()
        mock_bulk.assert_not_called()
        self.assertIn('Queued 2 reminders', out.getvalue())
