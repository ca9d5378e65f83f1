"""
Report builders over the repayment book.

Every report is a plain function returning a dict ready for a DRF
``Response``. Entry status is judged against ``today`` rather than the
stored status, so reports are correct even when the periodic status
refresh has not run yet.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
import logging

from django.conf import settings
from django.db.models import Q

from apps.installments.models import InstallmentPlan, RepaymentEntry
from apps.installments.utils import ZERO, classify_entry_status, money

logger = logging.getLogger(__name__)

SETTLED_STATUSES = ('paid', 'partial')

AGING_BUCKETS = (
    ('0_30', 0, 30),
    ('31_60', 31, 60),
    ('61_90', 61, 90),
    ('90_plus', 91, None),
)


def _is_overdue(entry, today):
    return entry.status != 'paid' and classify_entry_status(entry.due_date, today) == 'overdue'


def _percentage(part, whole):
    if not whole:
        return Decimal('0.00')
    return money(Decimal(part) / Decimal(whole) * 100)


def _in_range(value, date_from=None, date_to=None):
    if value is None:
        return False
    if date_from and value < date_from:
        return False
    if date_to and value > date_to:
        return False
    return True


def _plans_created_between(date_from=None, date_to=None):
    plans = InstallmentPlan.objects.all()
    if date_from:
        plans = plans.filter(created_at__date__gte=date_from)
    if date_to:
        plans = plans.filter(created_at__date__lte=date_to)
    return plans


def _settled_entries(date_from=None, date_to=None):
    entries = RepaymentEntry.objects.filter(
        status__in=SETTLED_STATUSES,
        paid_date__isnull=False,
    ).exclude(plan__status='cancelled')
    if date_from:
        entries = entries.filter(paid_date__gte=date_from)
    if date_to:
        entries = entries.filter(paid_date__lte=date_to)
    return entries


def _interest_earned(entry):
    """Interest portion of what was actually received, never more than was paid"""
    if entry.status not in SETTLED_STATUSES or entry.interest_component <= 0:
        return ZERO
    return min(entry.interest_component, entry.settled_amount)


def _entry_row(entry, today):
    plan = entry.plan
    return {
        'plan_id': plan.id,
        'customer_id': plan.customer_id,
        'customer_name': plan.customer.full_name,
        'phone': plan.customer.phone,
        'address': plan.customer.address,
        'product_name': plan.product.name,
        'installment_number': entry.installment_number,
        'due_date': entry.due_date,
        'amount_due': entry.amount_outstanding,
        'status': classify_entry_status(entry.due_date, today, current_status=entry.status),
    }


def installment_collection_report(date_from=None, date_to=None, today=None):
    """What was due, what is late and what has come in"""
    today = today or date.today()
    entries = list(
        RepaymentEntry.objects.exclude(plan__status='cancelled').select_related('plan')
    )

    collected = [
        e for e in entries
        if e.status in SETTLED_STATUSES and e.paid_date
        and (not (date_from or date_to) or _in_range(e.paid_date, date_from, date_to))
    ]
    overdue = [e for e in entries if _is_overdue(e, today)]
    pending = [
        e for e in entries
        if e.status != 'paid' and classify_entry_status(e.due_date, today) == 'due'
    ]

    by_date = defaultdict(lambda: {'count': 0, 'amount': ZERO})
    for entry in collected:
        by_date[entry.paid_date]['count'] += 1
        by_date[entry.paid_date]['amount'] += entry.settled_amount

    collection_by_date = [
        {'date': paid_date, 'count': row['count'], 'amount': row['amount']}
        for paid_date, row in sorted(by_date.items(), reverse=True)[:30]
    ]

    return {
        'total_installments_due': len(pending) + len(overdue) + len(collected),
        'total_collected': len(collected),
        'pending_count': len(pending),
        'late_payments': len(overdue),
        'total_amount_due': sum((e.emi_amount for e in pending + overdue), ZERO),
        'total_amount_collected': sum((e.settled_amount for e in collected), ZERO),
        'pending_amount': sum((e.amount_outstanding for e in pending), ZERO),
        'late_amount': sum((e.amount_outstanding for e in overdue), ZERO),
        'collection_by_date': collection_by_date,
    }


def outstanding_balance_report(today=None):
    """Unpaid balances of active plans, aged by days overdue"""
    today = today or date.today()
    plans = InstallmentPlan.objects.filter(status='active').select_related(
        'customer', 'product'
    ).prefetch_related('schedule')

    aging = {key: {'amount': ZERO, 'count': 0} for key, _, _ in AGING_BUCKETS}
    rows = []
    total_outstanding = ZERO
    total_overdue = ZERO

    for plan in plans:
        unpaid = [e for e in plan.schedule.all() if e.status != 'paid']
        remaining = sum((e.amount_outstanding for e in unpaid), ZERO)
        overdue = [e for e in unpaid if _is_overdue(e, today)]
        overdue_amount = sum((e.amount_outstanding for e in overdue), ZERO)
        max_days = 0

        for entry in overdue:
            days = entry.days_overdue(today)
            max_days = max(max_days, days)
            for key, low, high in AGING_BUCKETS:
                if days >= low and (high is None or days <= high):
                    aging[key]['amount'] += entry.amount_outstanding
                    aging[key]['count'] += 1
                    break

        total_outstanding += remaining
        total_overdue += overdue_amount

        if remaining > 0:
            rows.append({
                'plan_id': plan.id,
                'customer_id': plan.customer_id,
                'customer_name': plan.customer.full_name,
                'phone': plan.customer.phone,
                'product_name': plan.product.name,
                'remaining_balance': remaining,
                'overdue_amount': overdue_amount,
                'max_days_overdue': max_days,
            })

    rows.sort(key=lambda row: row['overdue_amount'], reverse=True)
    return {
        'total_outstanding': total_outstanding,
        'total_overdue': total_overdue,
        'total_customers': len(rows),
        'aging': aging,
        'plans': rows,
    }


def profit_and_loss_report(date_from=None, date_to=None):
    """Sales, collections and interest earned, less bad debts of defaulted plans"""
    plans = _plans_created_between(date_from, date_to).exclude(status='cancelled')
    entries = list(_settled_entries(date_from, date_to))

    total_sales = sum((p.product_price for p in plans), ZERO)
    total_down = sum((p.down_payment for p in plans), ZERO)
    interest_earned = sum((_interest_earned(e) for e in entries), ZERO)
    collected = sum((e.settled_amount for e in entries), ZERO)

    bad_debts = ZERO
    for plan in InstallmentPlan.objects.filter(status='defaulted').prefetch_related('schedule'):
        bad_debts += plan.total_payable - plan.amount_paid

    monthly = defaultdict(lambda: {'collections': ZERO, 'interest': ZERO})
    for entry in entries:
        month = entry.paid_date.strftime('%Y-%m')
        monthly[month]['collections'] += entry.settled_amount
        monthly[month]['interest'] += _interest_earned(entry)

    gross_revenue = collected + total_down
    return {
        'total_sales': total_sales,
        'total_down_payments': total_down,
        'interest_earned': interest_earned,
        'total_collected': gross_revenue,
        'bad_debts': bad_debts,
        'gross_revenue': gross_revenue,
        'net_profit': gross_revenue - bad_debts,
        'monthly_breakdown': [
            {'month': month, **values} for month, values in sorted(monthly.items())
        ],
    }


def customer_ledger(customer):
    """
    Running account of one customer across all plans.

    Each plan debits the full contract value (down payment plus scheduled
    installments), then credits the down payment and every settlement.
    """
    plans = InstallmentPlan.objects.filter(customer=customer).select_related(
        'product'
    ).prefetch_related('schedule').order_by('created_at')

    transactions = []
    total_purchases = ZERO
    total_paid = ZERO

    for plan in plans:
        contract_value = plan.down_payment + plan.total_payable
        total_purchases += contract_value
        transactions.append({
            'date': plan.start_date,
            'type': 'Purchase',
            'description': f"Installment Plan #{plan.id} - {plan.product.name}",
            'debit': contract_value,
            'credit': ZERO,
            'reference': f"Plan #{plan.id}",
        })
        if plan.down_payment > 0:
            total_paid += plan.down_payment
            transactions.append({
                'date': plan.start_date,
                'type': 'Down Payment',
                'description': f"Down payment for Plan #{plan.id}",
                'debit': ZERO,
                'credit': plan.down_payment,
                'reference': f"Plan #{plan.id}",
            })
        for entry in plan.schedule.all():
            if entry.status not in SETTLED_STATUSES:
                continue
            total_paid += entry.settled_amount
            transactions.append({
                'date': entry.paid_date or entry.due_date,
                'type': 'Installment',
                'description': f"Installment #{entry.installment_number} - Plan #{plan.id}",
                'debit': ZERO,
                'credit': entry.settled_amount,
                'reference': f"Plan #{plan.id}, Inst #{entry.installment_number}",
            })

    # stable sort keeps purchase before its down payment on the same date
    transactions.sort(key=lambda t: t['date'])
    running_balance = ZERO
    for row in transactions:
        running_balance += row['debit'] - row['credit']
        row['running_balance'] = running_balance

    return {
        'customer_id': customer.id,
        'customer_name': customer.full_name,
        'phone': customer.phone,
        'address': customer.address,
        'total_purchases': total_purchases,
        'total_paid': total_paid,
        'remaining_balance': total_purchases - total_paid,
        'available_credit': customer.available_credit,
        'transactions': transactions,
    }


def defaulters_report(today=None):
    """Active plans with at least one overdue installment, worst first"""
    today = today or date.today()
    plans = InstallmentPlan.objects.filter(status='active').select_related(
        'customer', 'product'
    ).prefetch_related('schedule')

    defaulters = []
    for plan in plans:
        entries = list(plan.schedule.all())
        overdue = [e for e in entries if _is_overdue(e, today)]
        if not overdue:
            continue

        paid_dates = [e.paid_date for e in entries if e.status in SETTLED_STATUSES and e.paid_date]
        defaulters.append({
            'plan_id': plan.id,
            'customer_id': plan.customer_id,
            'customer_name': plan.customer.full_name,
            'phone': plan.customer.phone,
            'address': plan.customer.address,
            'product_name': plan.product.name,
            'missed_installments': len(overdue),
            'overdue_amount': sum((e.amount_outstanding for e in overdue), ZERO),
            'max_days_overdue': max(e.days_overdue(today) for e in overdue),
            'last_paid_date': max(paid_dates) if paid_dates else None,
        })

    defaulters.sort(key=lambda row: row['max_days_overdue'], reverse=True)
    return {
        'total_defaulters': len(defaulters),
        'total_defaulted_amount': sum((d['overdue_amount'] for d in defaulters), ZERO),
        'defaulters': defaulters,
    }


def payment_history_report(customer_id=None, date_from=None, date_to=None):
    entries = _settled_entries(date_from, date_to).select_related(
        'plan', 'plan__customer', 'plan__product'
    ).order_by('-paid_date', 'plan_id', 'installment_number')
    if customer_id:
        entries = entries.filter(plan__customer_id=customer_id)

    payments = [
        {
            'plan_id': entry.plan_id,
            'customer_id': entry.plan.customer_id,
            'customer_name': entry.plan.customer.full_name,
            'phone': entry.plan.customer.phone,
            'product_name': entry.plan.product.name,
            'installment_number': entry.installment_number,
            'paid_date': entry.paid_date,
            'amount': entry.actual_paid_amount,
            'credit_adjusted_amount': entry.credit_adjusted_amount,
            'status': entry.status,
        }
        for entry in entries
    ]

    return {
        'total_payments': len(payments),
        'total_amount': sum(
            (p['amount'] + p['credit_adjusted_amount'] for p in payments), ZERO
        ),
        'payments': payments,
    }


def installment_sales_summary(date_from=None, date_to=None):
    plans = list(_plans_created_between(date_from, date_to))

    status_counts = {status: 0 for status, _ in InstallmentPlan.STATUS_CHOICES}
    tenure = defaultdict(lambda: {'count': 0, 'total_amount': ZERO})
    monthly = defaultdict(lambda: {'contracts': 0, 'down_payments': ZERO, 'financed_amount': ZERO})

    for plan in plans:
        status_counts[plan.status] += 1

        bucket = tenure[(plan.tenure, plan.tenor_type)]
        bucket['count'] += 1
        bucket['total_amount'] += plan.total_payable

        month = monthly[plan.created_at.strftime('%Y-%m')]
        month['contracts'] += 1
        month['down_payments'] += plan.down_payment
        month['financed_amount'] += plan.financed_amount

    return {
        'total_contracts': len(plans),
        'contracts_by_status': status_counts,
        'total_down_payments': sum((p.down_payment for p in plans), ZERO),
        'total_financed_amount': sum((p.financed_amount for p in plans), ZERO),
        'total_revenue': sum((p.total_payable for p in plans), ZERO),
        'tenure_breakdown': [
            {
                'tenure': length,
                'tenor_type': tenor_type,
                'tenure_label': f"{length} {tenor_type}s",
                **values,
            }
            for (length, tenor_type), values in sorted(tenure.items())
        ],
        'monthly_sales': [
            {'month': month, **values} for month, values in sorted(monthly.items())
        ],
    }


def default_rate_report(today=None):
    """Share of financed plans that are behind, overall and by month of sale"""
    today = today or date.today()
    plans = InstallmentPlan.objects.exclude(status='cancelled').prefetch_related('schedule')

    total = 0
    behind = 0
    financed = ZERO
    overdue_amount = ZERO
    monthly = defaultdict(lambda: {'total_plans': 0, 'defaults': 0})

    for plan in plans:
        overdue = [e for e in plan.schedule.all() if _is_overdue(e, today)]
        month = monthly[plan.created_at.strftime('%Y-%m')]

        total += 1
        month['total_plans'] += 1
        financed += plan.financed_amount
        if overdue:
            behind += 1
            month['defaults'] += 1
            overdue_amount += sum((e.amount_outstanding for e in overdue), ZERO)

    return {
        'total_financed_plans': total,
        'number_of_defaulters': behind,
        'default_percentage': _percentage(behind, total),
        'total_financed_amount': financed,
        'defaulted_amount': overdue_amount,
        'monthly_trend': [
            {
                'month': month,
                'total_plans': values['total_plans'],
                'defaults': values['defaults'],
                'default_rate': _percentage(values['defaults'], values['total_plans']),
            }
            for month, values in sorted(monthly.items())
        ],
    }


def due_today_report(today=None):
    """Entries due today plus everything already overdue, on active plans"""
    today = today or date.today()
    entries = RepaymentEntry.objects.filter(
        plan__status='active',
        due_date__lte=today,
    ).exclude(status='paid').select_related('plan', 'plan__customer', 'plan__product')

    items = [
        _entry_row(entry, today)
        for entry in entries
        if entry.due_date == today or _is_overdue(entry, today)
    ]
    items.sort(key=lambda row: (row['due_date'], row['plan_id']))

    return {
        'report_date': today,
        'total_due': len(items),
        'total_amount_due': sum((i['amount_due'] for i in items), ZERO),
        'items': items,
    }


def upcoming_due_report(days=7, today=None):
    today = today or date.today()
    end = today + timedelta(days=days)
    entries = RepaymentEntry.objects.filter(
        plan__status='active',
        due_date__range=[today, end],
    ).exclude(status='paid').select_related('plan', 'plan__customer', 'plan__product')

    items = sorted(
        (_entry_row(entry, today) for entry in entries),
        key=lambda row: (row['due_date'], row['plan_id'])
    )
    return {
        'days': days,
        'until': end,
        'total_upcoming': len(items),
        'total_amount_due': sum((i['amount_due'] for i in items), ZERO),
        'items': items,
    }


def calculate_late_fee(emi_amount, days_late):
    """EMI times the daily late-fee rate, for at most LATE_FEE_MAX_DAYS days"""
    daily_rate = Decimal(str(settings.LATE_FEE_DAILY_RATE))
    chargeable_days = min(max(days_late, 0), settings.LATE_FEE_MAX_DAYS)
    return money(emi_amount * daily_rate * chargeable_days)


def late_fee_report(date_from=None, date_to=None, today=None):
    """Entries paid after their due date or still overdue, with the fee each has run up"""
    today = today or date.today()
    entries = RepaymentEntry.objects.exclude(plan__status='cancelled').filter(
        Q(status__in=SETTLED_STATUSES, paid_date__isnull=False) | Q(due_date__lt=today)
    ).select_related('plan', 'plan__customer')

    items = []
    for entry in entries:
        if entry.status == 'paid' and entry.paid_date and entry.paid_date > entry.due_date:
            days_late = (entry.paid_date - entry.due_date).days
        elif _is_overdue(entry, today):
            days_late = entry.days_overdue(today)
        else:
            continue

        if (date_from or date_to) and not _in_range(entry.paid_date or entry.due_date, date_from, date_to):
            continue

        items.append({
            'plan_id': entry.plan_id,
            'customer_name': entry.plan.customer.full_name,
            'phone': entry.plan.customer.phone,
            'installment_number': entry.installment_number,
            'due_date': entry.due_date,
            'paid_date': entry.paid_date,
            'days_late': days_late,
            'late_fee_amount': calculate_late_fee(entry.emi_amount, days_late),
            'is_paid': entry.status == 'paid',
        })

    items.sort(key=lambda row: row['days_late'], reverse=True)
    return {
        'total_late_fees': sum((i['late_fee_amount'] for i in items), ZERO),
        'paid_late_fees': sum((i['late_fee_amount'] for i in items if i['is_paid']), ZERO),
        'unpaid_late_fees': sum((i['late_fee_amount'] for i in items if not i['is_paid']), ZERO),
        'total_late_entries': len(items),
        'items': items,
    }


def product_profit_report(date_from=None, date_to=None):
    """Margin of each plan: everything the customer pays over the product price"""
    plans = _plans_created_between(date_from, date_to).select_related(
        'customer', 'product'
    ).order_by('-created_at')

    items = []
    for plan in plans:
        profit = plan.down_payment + plan.total_payable - plan.product_price
        items.append({
            'plan_id': plan.id,
            'customer_name': plan.customer.full_name,
            'phone': plan.customer.phone,
            'product_name': plan.product.name,
            'product_price': plan.product_price,
            'down_payment': plan.down_payment,
            'financed_amount': plan.financed_amount,
            'total_payable': plan.total_payable,
            'interest_earned': plan.total_interest,
            'profit': profit,
            'profit_percentage': _percentage(profit, plan.product_price),
            'status': plan.status,
            'start_date': plan.start_date,
            'tenure': plan.tenure,
            'interest_rate': plan.interest_rate,
        })

    total_profit = sum((i['profit'] for i in items), ZERO)
    return {
        'total_plans': len(items),
        'total_product_cost': sum((i['product_price'] for i in items), ZERO),
        'total_payable': sum((i['total_payable'] for i in items), ZERO),
        'total_profit': total_profit,
        'total_interest_earned': sum((i['interest_earned'] for i in items), ZERO),
        'total_down_payments': sum((i['down_payment'] for i in items), ZERO),
        'average_profit_per_plan': money(total_profit / len(items)) if items else ZERO,
        'plans': items,
    }
