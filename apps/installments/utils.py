from collections import namedtuple
from datetime import date, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP, InvalidOperation
import logging

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
import numpy_financial as npf

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

PERIODS_PER_YEAR = {'month': 12, 'week': 52, 'day': 365}

UNSETTLED_STATUSES = ('upcoming', 'due', 'overdue')

ScheduleLine = namedtuple(
    'ScheduleLine',
    ['installment_number', 'due_date', 'emi_amount', 'principal', 'interest', 'balance', 'status']
)


def money(value, rounding=ROUND_HALF_UP):
    """Round to the minor currency unit, half-up unless told otherwise"""
    return Decimal(str(value)).quantize(CENT, rounding=rounding)


def _validate_terms(principal, annual_rate, periods, tenor_type):
    if not isinstance(principal, (int, float, Decimal)) or principal <= 0:
        raise ValidationError("Principal must be a positive number")

    if not isinstance(annual_rate, (int, float, Decimal)) or annual_rate < 0 or annual_rate > 100:
        raise ValidationError("Annual rate must be between 0 and 100")

    if isinstance(periods, bool) or not isinstance(periods, int) or periods <= 0:
        raise ValidationError("Periods must be a positive integer")

    if tenor_type not in PERIODS_PER_YEAR:
        raise ValidationError("Tenor type must be 'month', 'week', or 'day'")


def periodic_rate(annual_rate, tenor_type='month'):
    """Annual percentage rate converted to a rate per tenor period"""
    if tenor_type not in PERIODS_PER_YEAR:
        raise ValidationError("Tenor type must be 'month', 'week', or 'day'")
    return Decimal(str(annual_rate)) / Decimal(100) / Decimal(PERIODS_PER_YEAR[tenor_type])


def calculate_emi(principal, annual_rate, periods, tenor_type='month', rounding=ROUND_HALF_UP):
    """Equal periodic installment for a loan, using the PMT formula"""
    _validate_terms(principal, annual_rate, periods, tenor_type)

    try:
        principal = Decimal(str(principal))
        rate = periodic_rate(annual_rate, tenor_type)

        if rate == 0:
            emi = money(principal / Decimal(periods), rounding)
        else:
            pmt = npf.pmt(float(rate), periods, -float(principal))
            if not pmt or pmt != pmt:  # NaN
                raise ValidationError("Unable to calculate installment amount")
            emi = money(pmt, rounding)

    except (InvalidOperation, ValueError, TypeError) as e:
        logger.error(f"Error calculating EMI: {e}")
        raise ValidationError(f"Installment calculation error: {str(e)}")

    if emi < CENT:
        raise ValidationError(
            "Installment amount is below the minimum currency unit; shorten the tenure"
        )
    return emi


def due_date_for(start_date, installment_number, tenor_type='month'):
    """Due date of the n-th installment, counted in whole periods from the start date.

    Months are calendar months measured from the start date each time, so a
    plan starting on the 31st falls on the last day of shorter months and
    returns to the 31st when the month allows it.
    """
    if tenor_type == 'month':
        return start_date + relativedelta(months=installment_number)
    if tenor_type == 'week':
        return start_date + timedelta(weeks=installment_number)
    if tenor_type == 'day':
        return start_date + timedelta(days=installment_number)
    raise ValidationError("Tenor type must be 'month', 'week', or 'day'")


def classify_entry_status(due_date, today=None, grace_days=None, current_status=None):
    """Time-based status of a repayment entry.

    Settled states (paid, partial) are owned by the payment flow and are
    returned unchanged.
    """
    if current_status in ('paid', 'partial'):
        return current_status

    today = today or date.today()
    if grace_days is None:
        grace_days = settings.GRACE_PERIOD_DAYS

    if today < due_date:
        return 'upcoming'
    if today <= due_date + timedelta(days=grace_days):
        return 'due'
    return 'overdue'


def generate_schedule(financed_amount, annual_rate, tenure, start_date, tenor_type='month', today=None):
    """Amortization schedule as a list of ScheduleLine.

    Interest for each period is charged on the opening balance; the rest of
    the EMI repays principal. The final line takes whatever principal is
    left so the closing balance is exactly zero.

    When the half-up EMI would clear the balance before the last period
    (small amounts over long tenures), the EMI is rounded down instead and
    the final line absorbs the remainder.
    """
    emi = calculate_emi(financed_amount, annual_rate, tenure, tenor_type)
    schedule = _amortize(emi, financed_amount, annual_rate, tenure, start_date, tenor_type, today)
    if schedule is None:
        emi = calculate_emi(financed_amount, annual_rate, tenure, tenor_type, rounding=ROUND_DOWN)
        schedule = _amortize(emi, financed_amount, annual_rate, tenure, start_date, tenor_type, today)
    if schedule is None:
        raise ValidationError(
            f"Financed amount is repaid before installment {tenure}; shorten the tenure"
        )
    return schedule


def _amortize(emi, financed_amount, annual_rate, tenure, start_date, tenor_type, today):
    """Schedule lines for a fixed EMI, or None if the balance runs out early"""
    rate = periodic_rate(annual_rate, tenor_type)
    balance = money(financed_amount)
    schedule = []

    for number in range(1, tenure + 1):
        interest = money(balance * rate)

        if number == tenure:
            principal = balance
            amount = principal + interest
        else:
            principal = emi - interest
            amount = emi

        if principal <= 0:
            raise ValidationError(
                f"Installment {number} does not repay any principal; increase the amount or shorten the tenure"
            )

        balance = balance - principal
        if number < tenure and balance <= 0:
            return None

        due_date = due_date_for(start_date, number, tenor_type)
        schedule.append(ScheduleLine(
            installment_number=number,
            due_date=due_date,
            emi_amount=amount,
            principal=principal,
            interest=interest,
            balance=balance,
            status=classify_entry_status(due_date, today),
        ))

    return schedule


def financed_amount_for(product_price, down_payment, finance_amount=None):
    """Amount to amortize: the finance override (when positive) or product price, less down payment"""
    product_price = Decimal(str(product_price))
    down_payment = Decimal(str(down_payment or 0))

    if down_payment < 0:
        raise ValidationError("Down payment cannot be negative")

    base = product_price
    if finance_amount is not None and Decimal(str(finance_amount)) > 0:
        base = Decimal(str(finance_amount))

    financed = money(base - down_payment)
    if financed <= 0:
        raise ValidationError("Down payment must be less than the amount being financed")
    return financed


def calculate_plan_totals(product_price, down_payment, interest_rate, tenure, start_date,
                          tenor_type='month', finance_amount=None, today=None):
    """Financed amount, EMI, totals and schedule for a prospective plan. Writes nothing."""
    max_tenure = settings.MAX_TENURE
    if isinstance(tenure, int) and tenure > max_tenure:
        raise ValidationError(f"Tenure cannot exceed {max_tenure} periods")

    financed = financed_amount_for(product_price, down_payment, finance_amount)
    schedule = generate_schedule(financed, interest_rate, tenure, start_date, tenor_type, today)

    emi = schedule[0].emi_amount
    total_payable = emi * tenure
    return {
        'financed_amount': financed,
        'emi_amount': emi,
        'total_payable': total_payable,
        'total_interest': total_payable - financed,
        'schedule': schedule,
    }


def preview_plan(product_price, down_payment, interest_rate, tenure, start_date,
                 tenor_type='month', finance_amount=None, today=None):
    totals = calculate_plan_totals(
        product_price, down_payment, interest_rate, tenure, start_date,
        tenor_type=tenor_type, finance_amount=finance_amount, today=today
    )
    totals['schedule'] = [line._asdict() for line in totals['schedule']]
    return totals


def persist_schedule(plan, schedule):
    """Store generated schedule lines as repayment entries of the plan"""
    from .models import RepaymentEntry

    entries = [
        RepaymentEntry(
            plan=plan,
            installment_number=line.installment_number,
            due_date=line.due_date,
            emi_amount=line.emi_amount,
            principal_component=line.principal,
            interest_component=line.interest,
            balance=line.balance,
            status=line.status,
        )
        for line in schedule
    ]
    RepaymentEntry.objects.bulk_create(entries)
    logger.info(f"Created {len(entries)} repayment entries for plan {plan.id}")
    return entries


def update_plan_stats(plan):
    """Recompute paid/remaining counts and next due date; complete the plan when all entries are paid"""
    entries = list(plan.schedule.order_by('installment_number'))
    paid_count = sum(1 for entry in entries if entry.status == 'paid')
    next_unpaid = next((entry for entry in entries if entry.status != 'paid'), None)

    plan.paid_installments = paid_count
    plan.remaining_installments = max(0, plan.tenure - paid_count)
    plan.next_due_date = next_unpaid.due_date if next_unpaid else None

    update_fields = ['paid_installments', 'remaining_installments', 'next_due_date', 'updated_at']
    if paid_count >= plan.tenure and plan.status == 'active':
        plan.status = 'completed'
        update_fields.append('status')
        logger.info(f"Plan {plan.id} completed - all installments paid")

    plan.save(update_fields=update_fields)
    return plan


def apply_payment(entry, amount, user=None, today=None):
    """Settle (fully or partly) a single repayment entry with cash.

    Any amount beyond what the entry still owes is credited to the
    customer's register. Returns the over-payment.
    """
    from apps.parties.models import CreditRegisterEntry

    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than 0")

    outstanding = entry.amount_outstanding
    was_partial = entry.status == 'partial'
    overpayment = ZERO

    if amount >= outstanding:
        entry.actual_paid_amount += outstanding
        entry.status = 'paid'
        entry.paid_date = today or date.today()
        overpayment = amount - outstanding
    else:
        entry.actual_paid_amount += amount
        entry.status = 'partial'
        entry.paid_date = today or date.today()

    entry.save(update_fields=['actual_paid_amount', 'status', 'paid_date', 'updated_at'])

    if overpayment > 0:
        CreditRegisterEntry.objects.create(
            customer=entry.plan.customer,
            transaction_type='credit',
            amount=overpayment,
            description=(
                f"Overpayment for installment #{entry.installment_number} "
                f"(Paid: {amount}, EMI: {entry.emi_amount})"
            ),
            reference_id=str(entry.plan_id),
            reference_type='partial_installment_payment' if was_partial else 'installment_payment',
            created_by=user,
        )
        logger.info(
            f"Overpayment of {overpayment} on plan {entry.plan_id} #{entry.installment_number} "
            f"credited to customer {entry.plan.customer_id}"
        )

    return overpayment


@transaction.atomic
def apply_credit_balance(plan, user=None, today=None):
    """Spend the customer's register credit on the plan's unpaid entries, oldest first.

    Returns the total amount applied.
    """
    from apps.parties.models import CreditRegisterEntry

    customer = plan.customer
    available = customer.available_credit
    if available <= 0:
        return ZERO

    applied_total = ZERO
    unpaid = plan.schedule.select_for_update().exclude(status='paid').order_by('installment_number')

    for entry in unpaid:
        if available <= 0:
            break

        outstanding = entry.amount_outstanding
        to_apply = min(available, outstanding)
        if to_apply <= 0:
            continue

        settles = to_apply >= outstanding
        entry.credit_adjusted_amount += to_apply
        entry.status = 'paid' if settles else 'partial'
        entry.paid_date = today or date.today()
        entry.save(update_fields=['credit_adjusted_amount', 'status', 'paid_date', 'updated_at'])

        CreditRegisterEntry.objects.create(
            customer=customer,
            transaction_type='debit',
            amount=to_apply,
            description=f"Credit applied to installment #{entry.installment_number} of plan {plan.id}",
            reference_id=str(plan.id),
            reference_type='installment_payment' if settles else 'partial_installment_payment',
            created_by=user,
        )

        available -= to_apply
        applied_total += to_apply

    if applied_total > 0:
        logger.info(f"Applied {applied_total} of register credit to plan {plan.id}")
    return applied_total


def pay_installment(plan, installment_number, amount, use_credit_balance=False, user=None, today=None):
    """Take a payment against one installment of an active plan.

    The entry row is locked for the duration of the payment. When
    ``use_credit_balance`` is set, the customer's register credit (including
    any over-payment just recorded) is then applied to remaining entries.
    """
    from .models import InstallmentPlan, RepaymentEntry

    with transaction.atomic():
        plan = InstallmentPlan.objects.select_for_update().select_related('customer').get(pk=plan.pk)
        if plan.status != 'active':
            raise ValidationError(f"Cannot take payments on a {plan.status} plan")

        try:
            entry = RepaymentEntry.objects.select_for_update().get(
                plan=plan, installment_number=installment_number
            )
        except RepaymentEntry.DoesNotExist:
            raise ValidationError(f"Installment #{installment_number} does not exist on plan {plan.id}")

        if entry.status == 'paid':
            raise ValidationError(f"Installment #{installment_number} has already been paid")

        entry.plan = plan
        overpayment = apply_payment(entry, amount, user=user, today=today)

        credit_applied = ZERO
        if use_credit_balance:
            credit_applied = apply_credit_balance(plan, user=user, today=today)
            entry.refresh_from_db()

        update_plan_stats(plan)

    logger.info(
        f"Payment of {money(amount)} recorded on plan {plan.id} #{installment_number} ({entry.status})"
    )
    return {
        'plan': plan,
        'entry': entry,
        'overpayment': overpayment,
        'credit_applied': credit_applied,
        'remaining_for_entry': entry.amount_outstanding,
    }


def get_plan_summary(plan, today=None):
    """Counts and amounts describing where a plan stands"""
    today = today or date.today()
    entries = list(plan.schedule.all())

    if not entries:
        logger.warning(f"No repayment entries found for plan {plan.id}")

    overdue = [
        e for e in entries
        if e.status != 'paid' and classify_entry_status(e.due_date, today) == 'overdue'
    ]
    next_unpaid = next((e for e in entries if e.status != 'paid'), None)

    return {
        'total_installments': len(entries),
        'paid_installments': sum(1 for e in entries if e.status == 'paid'),
        'partial_installments': sum(1 for e in entries if e.status == 'partial'),
        'overdue_installments': len(overdue),
        'amount_paid': sum((e.settled_amount for e in entries), ZERO),
        'amount_outstanding': sum((e.amount_outstanding for e in entries), ZERO),
        'overdue_amount': sum((e.amount_outstanding for e in overdue), ZERO),
        'next_due_date': next_unpaid.due_date if next_unpaid else None,
    }


def error_message(exc):
    """First message of a Django ValidationError, for API error payloads"""
    return exc.messages[0] if getattr(exc, 'messages', None) else str(exc)
