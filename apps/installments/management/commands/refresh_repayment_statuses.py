from django.core.management.base import BaseCommand, CommandError
from django.conf import settings
from django.utils import timezone
from datetime import date, datetime
from apps.installments.models import RepaymentEntry
from apps.installments.signals import get_overdue_entries_report, refresh_statuses
from apps.installments.utils import UNSETTLED_STATUSES, classify_entry_status
import logging

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Re-classify repayment entries (upcoming/due/overdue), default plans with missed installments, and report'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be updated without making changes',
        )
        parser.add_argument(
            '--report-only',
            action='store_true',
            help='Generate the overdue report without updating any entries',
        )
        parser.add_argument(
            '--date',
            help='Evaluate statuses as of this date (YYYY-MM-DD, default: today)',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Verbose output with detailed logging',
        )

    def handle(self, *args, **options):
        today = self.parse_date(options['date'])
        self.stdout.write(
            self.style.SUCCESS(f"Starting repayment status refresh at {timezone.now()} (as of {today})")
        )

        try:
            report = get_overdue_entries_report(today)
            self.display_report(report, today, options['verbose'])

            if options['report_only']:
                self.stdout.write(self.style.SUCCESS("Report generated. No updates performed (report-only mode)."))
                return

            if options['dry_run']:
                self.show_pending_changes(today)
                return

            result = refresh_statuses(today)
        except Exception as e:
            logger.error(f"Error in refresh_repayment_statuses command: {e}")
            raise CommandError(f"Command failed: {str(e)}")

        counts = result['status_counts']
        if result['updated_entries']:
            self.stdout.write(self.style.SUCCESS(
                f"Updated {result['updated_entries']} entries: {counts['overdue']} overdue, "
                f"{counts['due']} due, {counts['upcoming']} upcoming"
            ))
        else:
            self.stdout.write(self.style.WARNING("No entries were updated"))

        if result['defaulted_plans']:
            self.stdout.write(self.style.WARNING(
                f"Marked {len(result['defaulted_plans'])} plans as defaulted: "
                f"{', '.join(str(plan_id) for plan_id in result['defaulted_plans'])}"
            ))

    def parse_date(self, value):
        if not value:
            return date.today()
        try:
            return datetime.strptime(value, '%Y-%m-%d').date()
        except ValueError:
            raise CommandError(f"Invalid date '{value}', expected YYYY-MM-DD")

    def show_pending_changes(self, today):
        entries = RepaymentEntry.objects.filter(
            plan__status='active',
            status__in=UNSETTLED_STATUSES,
        ).select_related('plan')

        changes = []
        for entry in entries:
            new_status = classify_entry_status(entry.due_date, today)
            if new_status != entry.status:
                changes.append((entry, new_status))

        if not changes:
            self.stdout.write(self.style.SUCCESS("No entry statuses would change."))
            return

        self.stdout.write(self.style.WARNING(f"DRY RUN: Would update {len(changes)} entries:"))
        for entry, new_status in changes:
            self.stdout.write(
                f"  - Entry {entry.id} (Plan {entry.plan_id} #{entry.installment_number}) "
                f"{entry.status} -> {new_status}"
            )

    def display_report(self, report, today, verbose=False):
        """Display the overdue entries report"""
        self.stdout.write("\n" + "=" * 50)
        self.stdout.write("OVERDUE INSTALLMENTS REPORT")
        self.stdout.write("=" * 50)

        self.stdout.write(f"Report Date: {report['report_date']}")
        self.stdout.write(f"Grace Period: {settings.GRACE_PERIOD_DAYS} days")
        self.stdout.write(f"Overdue Entries: {report['overdue_count']}")
        self.stdout.write(f"Already Marked Overdue: {report['marked_overdue_count']}")
        self.stdout.write(f"Partially Paid: {report['partial_count']}")

        if verbose and report['overdue_count'] > 0:
            self.stdout.write("\nDETAILED BREAKDOWN:")
            self.stdout.write("-" * 30)

            for entry in report['overdue_entries']:
                self.stdout.write(
                    f"Entry {entry.id}: "
                    f"Plan {entry.plan_id} #{entry.installment_number}, "
                    f"Due: {entry.due_date}, "
                    f"Days Late: {entry.days_overdue(today)}, "
                    f"Outstanding: {entry.amount_outstanding}"
                )

        if report['overdue_plans']:
            self.stdout.write(f"\nAffected Plans: {len(report['overdue_plans'])}")
            if verbose:
                for plan_id, plan_data in report['overdue_plans'].items():
                    plan = plan_data['plan']
                    overdue_count = len(plan_data['overdue_entries'])
                    self.stdout.write(
                        f"  Plan {plan_id}: {overdue_count} overdue installments ({plan.customer.full_name})"
                    )

        self.stdout.write("=" * 50 + "\n")
