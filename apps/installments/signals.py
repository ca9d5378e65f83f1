from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone
from datetime import date
import logging

from .models import InstallmentPlan, RepaymentEntry
from .utils import UNSETTLED_STATUSES, classify_entry_status, update_plan_stats

logger = logging.getLogger(__name__)


@receiver(post_save, sender=RepaymentEntry)
def update_plan_stats_on_save(sender, instance, created, **kwargs):
    """Keep the plan's paid/remaining counts and next due date in step with its entries"""
    if created:
        return

    plan = instance.plan

    # Prevent recursive saves while the plan is being updated
    if hasattr(plan, '_updating_stats'):
        return

    plan._updating_stats = True
    try:
        old_status = plan.status
        update_plan_stats(plan)
        if plan.status != old_status:
            logger.info(f"Plan {plan.id} status updated: {old_status} -> {plan.status}")
    finally:
        delattr(plan, '_updating_stats')


@receiver(post_save, sender=RepaymentEntry)
def check_overdue_on_save(sender, instance, created, **kwargs):
    """
    Re-classify an unsettled entry against today's date when it is saved.
    Uses a queryset update so this signal is not triggered again.
    """
    if instance.status not in UNSETTLED_STATUSES:
        return

    new_status = classify_entry_status(instance.due_date)
    if new_status != instance.status:
        RepaymentEntry.objects.filter(id=instance.id).update(
            status=new_status,
            updated_at=timezone.now()
        )
        logger.info(
            f"Repayment entry {instance.id} moved from {instance.status} to {new_status} "
            f"(due: {instance.due_date})"
        )
        instance.status = new_status


@receiver(post_save, sender=InstallmentPlan)
def validate_plan_status(sender, instance, created, **kwargs):
    """Log plans whose status disagrees with their repayment entries"""
    if created or hasattr(instance, '_updating_stats'):
        return

    paid_count = instance.schedule.filter(status='paid').count()
    if not paid_count and not instance.schedule.exists():
        return

    if instance.status == 'completed' and paid_count < instance.tenure:
        logger.warning(
            f"Plan {instance.id} marked completed but only {paid_count}/{instance.tenure} installments paid"
        )
    elif instance.status == 'active' and paid_count >= instance.tenure:
        logger.warning(f"Plan {instance.id} marked active but all installments are paid")


def mark_all_overdue_entries(today=None):
    """
    Re-classify unsettled entries of active plans for the given date.
    Returns a dict with the number of entries moved to each status.
    """
    today = today or date.today()
    grace = settings.GRACE_PERIOD_DAYS
    counts = {'upcoming': 0, 'due': 0, 'overdue': 0}

    entries = RepaymentEntry.objects.filter(
        plan__status='active',
        status__in=UNSETTLED_STATUSES,
    ).only('id', 'due_date', 'status')

    changes = {'upcoming': [], 'due': [], 'overdue': []}
    for entry in entries:
        new_status = classify_entry_status(entry.due_date, today, grace)
        if new_status != entry.status:
            changes[new_status].append(entry.id)

    now = timezone.now()
    for new_status, ids in changes.items():
        if ids:
            counts[new_status] = RepaymentEntry.objects.filter(id__in=ids).update(
                status=new_status,
                updated_at=now
            )

    total = sum(counts.values())
    if total:
        logger.info(
            f"Re-classified {total} repayment entries: {counts['overdue']} overdue, "
            f"{counts['due']} due, {counts['upcoming']} upcoming"
        )
    else:
        logger.info("No repayment entry statuses changed")
    return counts


def mark_defaulted_plans(today=None):
    """Mark active plans as defaulted once their overdue count reaches the configured threshold"""
    today = today or date.today()
    threshold = settings.DEFAULTED_AFTER_MISSED_INSTALLMENTS
    if not threshold or threshold <= 0:
        return []

    defaulted = []
    plans = InstallmentPlan.objects.filter(status='active').prefetch_related('schedule')
    for plan in plans:
        missed = sum(
            1 for entry in plan.schedule.all()
            if entry.status != 'paid' and classify_entry_status(entry.due_date, today) == 'overdue'
        )
        if missed >= threshold:
            plan.status = 'defaulted'
            plan._updating_stats = True
            plan.save(update_fields=['status', 'updated_at'])
            defaulted.append(plan.id)
            logger.warning(f"Plan {plan.id} marked defaulted after {missed} missed installments")

    return defaulted


def refresh_statuses(today=None):
    """Re-classify repayment entries and default plans with too many missed installments"""
    today = today or date.today()
    counts = mark_all_overdue_entries(today)
    defaulted = mark_defaulted_plans(today)
    return {
        'updated_entries': sum(counts.values()),
        'status_counts': counts,
        'defaulted_plans': defaulted,
        'run_date': today,
    }


def get_overdue_entries_report(today=None):
    """Overdue, still-unpaid entries grouped by plan"""
    today = today or date.today()
    overdue = [
        entry for entry in RepaymentEntry.objects.filter(
            plan__status__in=['active', 'defaulted'],
            due_date__lt=today,
        ).exclude(status='paid').select_related('plan', 'plan__customer')
        if classify_entry_status(entry.due_date, today) == 'overdue'
    ]

    overdue_plans = {}
    for entry in overdue:
        group = overdue_plans.setdefault(entry.plan_id, {
            'plan': entry.plan,
            'overdue_entries': [],
        })
        group['overdue_entries'].append(entry)

    return {
        'overdue_count': len(overdue),
        'marked_overdue_count': sum(1 for e in overdue if e.status == 'overdue'),
        'partial_count': sum(1 for e in overdue if e.status == 'partial'),
        'overdue_plans': overdue_plans,
        'overdue_entries': overdue,
        'report_date': today,
    }
