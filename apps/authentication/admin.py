from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth import get_user_model

User = get_user_model()


@admin.register(User)
class StaffUserAdmin(BaseUserAdmin):
    list_display = ('username', 'full_name', 'user_type', 'phone_number', 'is_active', 'last_login')
    list_filter = ('user_type', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email', 'phone_number')
    ordering = ('user_type', 'username')
    readonly_fields = ('last_login', 'date_joined', 'created_at', 'updated_at')
    actions = ['deactivate_staff']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Back-office Role', {
            'fields': ('user_type', 'phone_number', 'created_at', 'updated_at')
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'user_type', 'phone_number', 'password1', 'password2'),
        }),
    )

    @admin.display(description='Name')
    def full_name(self, obj):
        return obj.get_full_name() or '-'

    @admin.action(description='Deactivate selected staff accounts')
    def deactivate_staff(self, request, queryset):
        updated = queryset.exclude(pk=request.user.pk).update(is_active=False)
        self.message_user(request, f"{updated} staff account(s) deactivated")
