from django.contrib import admin
from .models import InstallmentPlan, RepaymentEntry, PlanGuarantor


class RepaymentEntryInline(admin.TabularInline):
    model = RepaymentEntry
    extra = 0
    readonly_fields = [
        'installment_number', 'due_date', 'emi_amount', 'principal_component',
        'interest_component', 'balance', 'created_at', 'updated_at'
    ]


class PlanGuarantorInline(admin.TabularInline):
    model = PlanGuarantor
    extra = 0
    raw_id_fields = ['party']


@admin.register(InstallmentPlan)
class InstallmentPlanAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'customer', 'product', 'financed_amount', 'emi_amount',
        'tenure', 'tenor_type', 'status', 'next_due_date', 'created_at'
    ]
    list_filter = ['status', 'tenor_type', 'start_date', 'created_at']
    search_fields = ['customer__full_name', 'customer__phone', 'product__name']
    readonly_fields = [
        'financed_amount', 'emi_amount', 'total_payable', 'total_interest',
        'paid_installments', 'remaining_installments', 'next_due_date',
        'created_at', 'updated_at'
    ]
    raw_id_fields = ['customer', 'product', 'created_by']
    inlines = [PlanGuarantorInline, RepaymentEntryInline]

    fieldsets = (
        ('Contract', {
            'fields': ('customer', 'product', 'created_by', 'start_date', 'status')
        }),
        ('Financing', {
            'fields': (
                'product_price', 'finance_amount', 'down_payment', 'financed_amount',
                'interest_rate', 'tenure', 'tenor_type'
            )
        }),
        ('Totals', {
            'fields': (
                'emi_amount', 'total_payable', 'total_interest',
                'paid_installments', 'remaining_installments', 'next_due_date'
            )
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(RepaymentEntry)
class RepaymentEntryAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'plan', 'installment_number', 'emi_amount',
        'due_date', 'status', 'paid_date'
    ]
    list_filter = ['status', 'due_date', 'paid_date']
    search_fields = ['plan__customer__full_name']
    readonly_fields = ['created_at', 'updated_at']

    fieldsets = (
        ('Installment', {
            'fields': (
                'plan', 'installment_number', 'due_date', 'emi_amount',
                'principal_component', 'interest_component', 'balance'
            )
        }),
        ('Settlement', {
            'fields': ('status', 'paid_date', 'actual_paid_amount', 'credit_adjusted_amount')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
