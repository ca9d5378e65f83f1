from celery import shared_task
from django.core.mail import send_mail
from django.conf import settings
from datetime import date, timedelta
import logging

from .models import RepaymentEntry
from .signals import refresh_statuses

logger = logging.getLogger(__name__)

REMINDER_DAYS_AHEAD = (3, 1, 0)


@shared_task
def refresh_repayment_statuses():
    """Periodic re-classification of entries and defaulting of plans"""
    result = refresh_statuses()
    logger.info(
        f"Repayment status refresh: {result['updated_entries']} entries updated, "
        f"{len(result['defaulted_plans'])} plans defaulted"
    )
    result['run_date'] = str(result['run_date'])
    return result


@shared_task(bind=True, max_retries=3)
def send_due_reminder(self, entry_id, days_until_due=None):
    """
    Email a repayment reminder for one entry to the plan's customer
    """
    try:
        entry = RepaymentEntry.objects.select_related('plan', 'plan__customer').get(id=entry_id)
    except RepaymentEntry.DoesNotExist:
        error_msg = f"Repayment entry {entry_id} not found"
        logger.error(error_msg)
        return {'error': error_msg}

    if days_until_due is None:
        days_until_due = (entry.due_date - date.today()).days

    if entry.status == 'paid' or entry.plan.status != 'active':
        logger.info(
            f"Skipping reminder for entry {entry_id} - entry {entry.status}, plan {entry.plan.status}"
        )
        return {'entry_id': entry_id, 'status': 'skipped'}

    recipient = entry.plan.customer.email
    if not recipient:
        logger.info(f"Skipping reminder for entry {entry_id} - customer has no email address")
        return {'entry_id': entry_id, 'status': 'skipped', 'reason': 'no email'}

    if days_until_due > 0:
        reminder_type = 'upcoming'
        subject = f"Installment Reminder: Due in {days_until_due} Days"
    elif days_until_due == 0:
        reminder_type = 'due_today'
        subject = "Installment Reminder: Due Today"
    else:
        reminder_type = 'overdue'
        subject = f"Overdue Installment: {abs(days_until_due)} Days Late"

    try:
        send_mail(
            subject,
            create_reminder_message(entry, days_until_due, reminder_type),
            settings.DEFAULT_FROM_EMAIL,
            [recipient],
        )
    except Exception as e:
        logger.error(f"Failed to send reminder for entry {entry_id}: {e}")
        if self.request.retries < self.max_retries:
            logger.info(f"Retrying reminder for entry {entry_id} (attempt {self.request.retries + 1})")
            raise self.retry(countdown=60 * (self.request.retries + 1))
        return {'error': str(e), 'entry_id': entry_id}

    logger.info(f"Reminder sent for entry {entry_id} ({reminder_type}, {days_until_due} days)")
    return {
        'entry_id': entry_id,
        'reminder_type': reminder_type,
        'days_until_due': days_until_due,
        'status': 'sent',
        'recipient': recipient,
    }


@shared_task
def send_bulk_due_reminders(days_ahead=3):
    """
    Queue reminders for every unpaid entry of an active plan due in ``days_ahead`` days
    """
    target_date = date.today() + timedelta(days=days_ahead)
    entries = RepaymentEntry.objects.filter(
        due_date=target_date,
        plan__status='active',
    ).exclude(status='paid').exclude(plan__customer__email='')

    entry_ids = list(entries.values_list('id', flat=True))
    if not entry_ids:
        logger.info(f"No installments due in {days_ahead} days ({target_date})")
        return {
            'days_ahead': days_ahead,
            'target_date': str(target_date),
            'reminders_sent': 0,
            'message': 'No installments found'
        }

    logger.info(f"Queueing {len(entry_ids)} reminders for installments due on {target_date}")
    task_ids = [send_due_reminder.delay(entry_id, days_ahead).id for entry_id in entry_ids]

    return {
        'days_ahead': days_ahead,
        'target_date': str(target_date),
        'reminders_sent': len(entry_ids),
        'task_ids': task_ids,
        'message': f'Sent {len(entry_ids)} installment reminders'
    }


@shared_task
def send_overdue_reminders():
    """
    Refresh statuses, then queue a reminder for every overdue entry of an active plan
    """
    refreshed = refresh_statuses()
    today = date.today()

    overdue = RepaymentEntry.objects.filter(
        plan__status='active',
        status__in=['overdue', 'partial'],
        due_date__lt=today,
    ).exclude(plan__customer__email='').only('id', 'due_date')

    task_ids = []
    for entry in overdue:
        days_overdue = (today - entry.due_date).days
        task_ids.append(send_due_reminder.delay(entry.id, -days_overdue).id)

    if not task_ids:
        return {
            'updated_entries': refreshed['updated_entries'],
            'overdue_reminders_sent': 0,
            'message': 'No overdue installments found'
        }

    logger.info(f"Queued {len(task_ids)} overdue installment reminders")
    return {
        'updated_entries': refreshed['updated_entries'],
        'overdue_reminders_sent': len(task_ids),
        'task_ids': task_ids,
        'message': f'Sent {len(task_ids)} overdue reminders'
    }


@shared_task
def daily_due_reminders():
    """
    Daily run: reminders 3 days ahead, 1 day ahead, due today, then overdue
    """
    results = {}
    for days_ahead in REMINDER_DAYS_AHEAD:
        results[f'{days_ahead}_day_reminders'] = send_bulk_due_reminders(days_ahead)
    results['overdue_reminders'] = send_overdue_reminders()

    total_sent = sum(
        result.get('reminders_sent', 0) for key, result in results.items() if key != 'overdue_reminders'
    ) + results['overdue_reminders'].get('overdue_reminders_sent', 0)

    logger.info(f"Daily installment reminders completed: {total_sent} total reminders sent")
    return {
        'total_reminders_sent': total_sent,
        'execution_date': str(date.today()),
        'details': results
    }


def create_reminder_message(entry, days_until_due, reminder_type):
    """Plain-text reminder body"""
    plan = entry.plan
    currency = settings.CURRENCY
    amount_due = entry.amount_outstanding

    if reminder_type == 'upcoming':
        opening = f"This is a friendly reminder that your installment is due in {days_until_due} days."
        closing = "Please pay by the due date to avoid late fees."
    elif reminder_type == 'due_today':
        opening = "Your installment is due TODAY."
        closing = "Please pay today to avoid late fees."
    else:
        opening = f"Your installment is now {abs(days_until_due)} days overdue."
        closing = "Please pay immediately to avoid further late fees."

    return f"""
Dear {plan.customer.full_name},

{opening}

Installment Details:
- Installment Number: {entry.installment_number} of {plan.tenure}
- Amount Due: {amount_due} {currency}
- Due Date: {entry.due_date}
- Plan ID: {plan.id}

{closing}
""".strip()
