from django.contrib import admin
from .models import Party, CreditRegisterEntry


class CreditRegisterEntryInline(admin.TabularInline):
    model = CreditRegisterEntry
    extra = 0
    readonly_fields = ['created_at']


@admin.register(Party)
class PartyAdmin(admin.ModelAdmin):
    list_display = ['id', 'full_name', 'phone', 'national_id', 'role', 'city', 'created_at']
    list_filter = ['role', 'city', 'created_at']
    search_fields = ['full_name', 'phone', 'national_id', 'email']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [CreditRegisterEntryInline]


@admin.register(CreditRegisterEntry)
class CreditRegisterEntryAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'transaction_type', 'amount', 'reference_type', 'created_at']
    list_filter = ['transaction_type', 'reference_type', 'created_at']
    search_fields = ['customer__full_name', 'reference_id', 'description']
    readonly_fields = ['created_at']
