from django.core.management.base import BaseCommand, CommandError
from datetime import date, timedelta
import logging

from apps.installments.models import RepaymentEntry
from apps.installments.tasks import (
    REMINDER_DAYS_AHEAD,
    send_bulk_due_reminders,
    send_due_reminder,
    send_overdue_reminders,
)

logger = logging.getLogger(__name__)

OVERDUE = None


class Command(BaseCommand):
    help = 'Email customers about installments coming due or already overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--entry-id',
            type=int,
            help='Remind about a single repayment entry',
        )
        parser.add_argument(
            '--days-ahead',
            type=int,
            default=3,
            help='Remind about entries due this many days from today (default: 3)',
        )
        parser.add_argument(
            '--overdue-only',
            action='store_true',
            help='Remind about overdue entries only',
        )
        parser.add_argument(
            '--daily-batch',
            action='store_true',
            help='Run every reminder window of the daily schedule, then overdue',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Count the reminders that would go out without sending any',
        )

    def handle(self, *args, **options):
        if options['entry_id']:
            return self.remind_entry(options['entry_id'], options['dry_run'])

        if options['daily_batch']:
            windows = list(REMINDER_DAYS_AHEAD) + [OVERDUE]
        elif options['overdue_only']:
            windows = [OVERDUE]
        else:
            windows = [options['days_ahead']]

        if options['dry_run']:
            today = date.today()
            total = 0
            for window in windows:
                count = self.candidates(window, today).count()
                total += count
                self.stdout.write(f"  {self.label(window)}: {count} installments")
            self.stdout.write(self.style.WARNING(f"DRY RUN: Would send {total} reminders"))
            return

        total = 0
        for window in windows:
            try:
                if window is OVERDUE:
                    sent = send_overdue_reminders()['overdue_reminders_sent']
                else:
                    sent = send_bulk_due_reminders(window)['reminders_sent']
            except Exception as e:
                logger.error(f"Reminder run failed for {self.label(window)}: {e}")
                raise CommandError(f"Reminder run failed: {e}")
            total += sent
            self.stdout.write(f"  {self.label(window)}: {sent} reminders queued")

        self.stdout.write(self.style.SUCCESS(f"Queued {total} reminders on {date.today()}"))

    def label(self, window):
        return 'overdue' if window is OVERDUE else f"due in {window} days"

    def candidates(self, window, today):
        """Entries the matching reminder task would pick up"""
        entries = RepaymentEntry.objects.filter(
            plan__status='active'
        ).exclude(status='paid').exclude(plan__customer__email='')
        if window is OVERDUE:
            return entries.filter(due_date__lt=today)
        return entries.filter(due_date=today + timedelta(days=window))

    def remind_entry(self, entry_id, dry_run):
        entry = RepaymentEntry.objects.select_related('plan__customer').filter(id=entry_id).first()
        if entry is None:
            raise CommandError(f"Repayment entry {entry_id} not found")

        days_until_due = (entry.due_date - date.today()).days
        self.stdout.write(
            f"Entry {entry.id}: plan {entry.plan_id} #{entry.installment_number}, "
            f"{entry.plan.customer.full_name}, {entry.amount_outstanding} outstanding, "
            f"due {entry.due_date} ({days_until_due} days), {entry.status}"
        )

        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN: Would send 1 reminder"))
            return

        result = send_due_reminder(entry.id, days_until_due)
        self.stdout.write(f"Result: {result}")
