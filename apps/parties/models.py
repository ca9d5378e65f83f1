from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum


class Party(models.Model):
    ROLE_CHOICES = [
        ('customer', 'Customer'),
        ('guarantor', 'Guarantor'),
    ]

    full_name = models.CharField(max_length=200)
    guardian_name = models.CharField(
        max_length=200,
        blank=True,
        help_text='Son/daughter of'
    )
    phone = models.CharField(max_length=50, blank=True)
    national_id = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=100, blank=True)
    picture = models.FileField(upload_to='parties/', blank=True, null=True)
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default='customer'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Party'
        verbose_name_plural = 'Parties'

    def __str__(self):
        return f"{self.full_name} ({self.role})"

    @property
    def available_credit(self):
        """Credit balance on the customer's register (credits minus debits)"""
        totals = {
            row['transaction_type']: row['total']
            for row in self.register_entries.order_by().values('transaction_type').annotate(total=Sum('amount'))
        }
        credits = totals.get('credit') or Decimal('0.00')
        debits = totals.get('debit') or Decimal('0.00')
        return credits - debits


class CreditRegisterEntry(models.Model):
    """Customer credit register: over-payments in, credit applied to installments out"""

    TRANSACTION_TYPE_CHOICES = [
        ('credit', 'Credit'),
        ('debit', 'Debit'),
    ]

    REFERENCE_TYPE_CHOICES = [
        ('installment_payment', 'Installment Payment'),
        ('partial_installment_payment', 'Partial Installment Payment'),
        ('manual_adjustment', 'Manual Adjustment'),
    ]

    customer = models.ForeignKey(
        Party,
        on_delete=models.CASCADE,
        related_name='register_entries'
    )
    transaction_type = models.CharField(max_length=10, choices=TRANSACTION_TYPE_CHOICES)
    amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    description = models.CharField(max_length=500)
    reference_id = models.CharField(max_length=50, blank=True)
    reference_type = models.CharField(
        max_length=50,
        choices=REFERENCE_TYPE_CHOICES,
        default='manual_adjustment'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='register_entries'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Credit Register Entry'
        verbose_name_plural = 'Credit Register Entries'

    def __str__(self):
        return f"{self.transaction_type} {self.amount} - {self.customer.full_name}"
