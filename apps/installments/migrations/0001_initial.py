# Generated manually for the installments app

from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('parties', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InstallmentPlan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('finance_amount', models.DecimalField(blank=True, decimal_places=2, help_text='Overrides the product price as the amount being financed', max_digits=12, null=True)),
                ('down_payment', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[MinValueValidator(Decimal('0.00'))])),
                ('financed_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[MinValueValidator(Decimal('0.01'))])),
                ('interest_rate', models.DecimalField(decimal_places=2, help_text='Annual percentage rate', max_digits=5, validators=[MinValueValidator(0), MaxValueValidator(100)])),
                ('tenure', models.PositiveIntegerField(validators=[MinValueValidator(1)])),
                ('tenor_type', models.CharField(choices=[('month', 'Monthly'), ('week', 'Weekly'), ('day', 'Daily')], default='month', max_length=10)),
                ('emi_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('total_payable', models.DecimalField(decimal_places=2, max_digits=14)),
                ('total_interest', models.DecimalField(decimal_places=2, max_digits=14)),
                ('start_date', models.DateField()),
                ('status', models.CharField(choices=[('active', 'Active'), ('completed', 'Completed'), ('defaulted', 'Defaulted'), ('cancelled', 'Cancelled')], default='active', max_length=20)),
                ('paid_installments', models.PositiveIntegerField(default=0)),
                ('remaining_installments', models.PositiveIntegerField(default=0)),
                ('next_due_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='installment_plans', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='installment_plans', to='parties.party')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='installment_plans', to='catalog.product')),
            ],
            options={
                'verbose_name': 'Installment Plan',
                'verbose_name_plural': 'Installment Plans',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='RepaymentEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('installment_number', models.PositiveIntegerField()),
                ('due_date', models.DateField()),
                ('emi_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[MinValueValidator(Decimal('0.01'))])),
                ('principal_component', models.DecimalField(decimal_places=2, max_digits=12)),
                ('interest_component', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[MinValueValidator(0)])),
                ('balance', models.DecimalField(decimal_places=2, max_digits=12)),
                ('status', models.CharField(choices=[('upcoming', 'Upcoming'), ('due', 'Due'), ('paid', 'Paid'), ('overdue', 'Overdue'), ('partial', 'Partial')], default='upcoming', max_length=20)),
                ('paid_date', models.DateField(blank=True, null=True)),
                ('actual_paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('credit_adjusted_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('plan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='schedule', to='installments.installmentplan')),
            ],
            options={
                'verbose_name': 'Repayment Entry',
                'verbose_name_plural': 'Repayment Entries',
                'ordering': ['installment_number'],
                'unique_together': {('plan', 'installment_number')},
            },
        ),
        migrations.CreateModel(
            name='PlanGuarantor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('relationship', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('party', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='guaranteed_plans', to='parties.party')),
                ('plan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='plan_guarantors', to='installments.installmentplan')),
            ],
            options={
                'verbose_name': 'Plan Guarantor',
                'verbose_name_plural': 'Plan Guarantors',
                'ordering': ['created_at'],
                'unique_together': {('plan', 'party')},
            },
        ),
    ]
