# Generated manually for the parties app

from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Party',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(max_length=200)),
                ('guardian_name', models.CharField(blank=True, help_text='Son/daughter of', max_length=200)),
                ('phone', models.CharField(blank=True, max_length=50)),
                ('national_id', models.CharField(blank=True, max_length=50)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('address', models.CharField(blank=True, max_length=500)),
                ('city', models.CharField(blank=True, max_length=100)),
                ('picture', models.FileField(blank=True, null=True, upload_to='parties/')),
                ('role', models.CharField(choices=[('customer', 'Customer'), ('guarantor', 'Guarantor')], default='customer', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Party',
                'verbose_name_plural': 'Parties',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CreditRegisterEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_type', models.CharField(choices=[('credit', 'Credit'), ('debit', 'Debit')], max_length=10)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=18, validators=[MinValueValidator(Decimal('0.01'))])),
                ('description', models.CharField(max_length=500)),
                ('reference_id', models.CharField(blank=True, max_length=50)),
                ('reference_type', models.CharField(choices=[('installment_payment', 'Installment Payment'), ('partial_installment_payment', 'Partial Installment Payment'), ('manual_adjustment', 'Manual Adjustment')], default='manual_adjustment', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='register_entries', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='register_entries', to='parties.party')),
            ],
            options={
                'verbose_name': 'Credit Register Entry',
                'verbose_name_plural': 'Credit Register Entries',
                'ordering': ['-created_at'],
            },
        ),
    ]
