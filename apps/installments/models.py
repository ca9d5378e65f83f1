from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
from datetime import date, timedelta

from apps.catalog.models import Product
from apps.parties.models import Party


class InstallmentPlan(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('defaulted', 'Defaulted'),
        ('cancelled', 'Cancelled'),
    ]

    TENOR_TYPE_CHOICES = [
        ('month', 'Monthly'),
        ('week', 'Weekly'),
        ('day', 'Daily'),
    ]

    customer = models.ForeignKey(
        Party,
        on_delete=models.PROTECT,
        related_name='installment_plans'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='installment_plans'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='installment_plans'
    )
    product_price = models.DecimalField(max_digits=12, decimal_places=2)
    finance_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text='Overrides the product price as the amount being financed'
    )
    down_payment = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    financed_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    interest_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text='Annual percentage rate'
    )
    tenure = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    tenor_type = models.CharField(
        max_length=10,
        choices=TENOR_TYPE_CHOICES,
        default='month'
    )
    emi_amount = models.DecimalField(max_digits=12, decimal_places=2)
    total_payable = models.DecimalField(max_digits=14, decimal_places=2)
    total_interest = models.DecimalField(max_digits=14, decimal_places=2)
    start_date = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='active'
    )
    paid_installments = models.PositiveIntegerField(default=0)
    remaining_installments = models.PositiveIntegerField(default=0)
    next_due_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Installment Plan'
        verbose_name_plural = 'Installment Plans'

    def __str__(self):
        return f"Plan {self.id} - {self.customer.full_name} - {self.financed_amount}"

    @property
    def base_amount(self):
        if self.finance_amount and self.finance_amount > 0:
            return self.finance_amount
        return self.product_price

    @property
    def amount_paid(self):
        """Installment money received so far, excluding the down payment"""
        return sum((entry.settled_amount for entry in self.schedule.all()), Decimal('0.00'))

    @property
    def outstanding_amount(self):
        return sum(
            (entry.amount_outstanding for entry in self.schedule.all() if entry.status != 'paid'),
            Decimal('0.00')
        )


class RepaymentEntry(models.Model):
    STATUS_CHOICES = [
        ('upcoming', 'Upcoming'),
        ('due', 'Due'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('partial', 'Partial'),
    ]

    plan = models.ForeignKey(
        InstallmentPlan,
        on_delete=models.CASCADE,
        related_name='schedule'
    )
    installment_number = models.PositiveIntegerField()
    due_date = models.DateField()
    emi_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    principal_component = models.DecimalField(max_digits=12, decimal_places=2)
    interest_component = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        default=Decimal('0.00')
    )
    balance = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='upcoming'
    )
    paid_date = models.DateField(null=True, blank=True)
    actual_paid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    credit_adjusted_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['installment_number']
        unique_together = ['plan', 'installment_number']
        verbose_name = 'Repayment Entry'
        verbose_name_plural = 'Repayment Entries'

    def __str__(self):
        return f"Plan {self.plan_id} #{self.installment_number} - {self.emi_amount}"

    @property
    def settled_amount(self):
        return self.actual_paid_amount + self.credit_adjusted_amount

    @property
    def amount_outstanding(self):
        return max(Decimal('0.00'), self.emi_amount - self.settled_amount)

    @property
    def is_overdue(self):
        """Unpaid (or partially paid) past its due date plus grace"""
        if self.status == 'paid':
            return False
        grace = timedelta(days=settings.GRACE_PERIOD_DAYS)
        return self.due_date + grace < date.today()

    def days_overdue(self, today=None):
        today = today or date.today()
        return max(0, (today - self.due_date).days)


class PlanGuarantor(models.Model):
    """Links a guarantor party to a plan; a party may guarantee many plans"""

    plan = models.ForeignKey(
        InstallmentPlan,
        on_delete=models.CASCADE,
        related_name='plan_guarantors'
    )
    party = models.ForeignKey(
        Party,
        on_delete=models.PROTECT,
        related_name='guaranteed_plans'
    )
    relationship = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']
        unique_together = ['plan', 'party']
        verbose_name = 'Plan Guarantor'
        verbose_name_plural = 'Plan Guarantors'

    def __str__(self):
        return f"{self.party.full_name} guarantees plan {self.plan_id}"
