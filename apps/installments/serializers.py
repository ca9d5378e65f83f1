from rest_framework import serializers
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
import logging

from apps.catalog.models import Product
from apps.parties.models import Party
from apps.parties.serializers import PartySearchSerializer
from .models import InstallmentPlan, RepaymentEntry, PlanGuarantor
from .utils import calculate_plan_totals, error_message as _error_message, persist_schedule, update_plan_stats

logger = logging.getLogger(__name__)


class RepaymentEntrySerializer(serializers.ModelSerializer):
    is_overdue = serializers.ReadOnlyField()
    amount_outstanding = serializers.ReadOnlyField()

    class Meta:
        model = RepaymentEntry
        fields = [
            'id', 'installment_number', 'due_date', 'emi_amount',
            'principal_component', 'interest_component', 'balance',
            'status', 'paid_date', 'actual_paid_amount', 'credit_adjusted_amount',
            'amount_outstanding', 'is_overdue'
        ]
        read_only_fields = fields


class PlanGuarantorSerializer(serializers.ModelSerializer):
    """Guarantor link; creates a new guarantor party unless an existing party is given"""

    PARTY_FIELDS = ['full_name', 'guardian_name', 'phone', 'national_id', 'address', 'picture']

    party = serializers.PrimaryKeyRelatedField(queryset=Party.objects.all(), required=False)
    party_detail = PartySearchSerializer(source='party', read_only=True)
    full_name = serializers.CharField(write_only=True, required=False)
    guardian_name = serializers.CharField(write_only=True, required=False, allow_blank=True)
    phone = serializers.CharField(write_only=True, required=False, allow_blank=True)
    national_id = serializers.CharField(write_only=True, required=False, allow_blank=True)
    address = serializers.CharField(write_only=True, required=False, allow_blank=True)
    picture = serializers.FileField(write_only=True, required=False, allow_null=True)

    class Meta:
        model = PlanGuarantor
        fields = [
            'id', 'party', 'party_detail', 'full_name', 'guardian_name', 'phone',
            'national_id', 'address', 'picture', 'relationship', 'created_at'
        ]
        read_only_fields = ['id', 'created_at']

    def validate(self, attrs):
        if self.instance is None and attrs.get('party') is None:
            if not (attrs.get('full_name') or '').strip():
                raise serializers.ValidationError(
                    "Either an existing party or the guarantor's full_name is required"
                )
        return attrs

    def _pop_party_fields(self, validated_data):
        return {
            field: validated_data.pop(field)
            for field in self.PARTY_FIELDS
            if field in validated_data
        }

    def create(self, validated_data):
        plan = self.context['plan']
        party_fields = self._pop_party_fields(validated_data)
        party = validated_data.pop('party', None)

        with transaction.atomic():
            if party is None:
                party = Party.objects.create(role='guarantor', **party_fields)
                logger.info(f"Guarantor party {party.id} created for plan {plan.id}")

            if PlanGuarantor.objects.filter(plan=plan, party=party).exists():
                raise serializers.ValidationError("This party already guarantees the plan")

            return PlanGuarantor.objects.create(plan=plan, party=party, **validated_data)

    def update(self, instance, validated_data):
        party_fields = self._pop_party_fields(validated_data)
        validated_data.pop('party', None)

        with transaction.atomic():
            if party_fields:
                party = instance.party
                for field, value in party_fields.items():
                    setattr(party, field, value)
                party.save()

            if 'relationship' in validated_data:
                instance.relationship = validated_data['relationship']
                instance.save(update_fields=['relationship'])

        return instance


class InstallmentPlanCreateSerializer(serializers.ModelSerializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Party.objects.all())
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    interest_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)

    class Meta:
        model = InstallmentPlan
        fields = [
            'customer', 'product', 'finance_amount', 'down_payment',
            'interest_rate', 'tenure', 'tenor_type', 'start_date'
        ]

    def validate_customer(self, value):
        if value.role != 'customer':
            raise serializers.ValidationError("Installment plans can only be opened for customers")
        return value

    def validate_product(self, value):
        if value.quantity < 1:
            raise serializers.ValidationError(f"{value.name} is out of stock")
        return value

    def validate_interest_rate(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("Interest rate must be between 0 and 100")
        return value

    def validate_down_payment(self, value):
        if value < 0:
            raise serializers.ValidationError("Down payment cannot be negative")
        return value

    def validate_tenure(self, value):
        if value < 1 or value > settings.MAX_TENURE:
            raise serializers.ValidationError(
                f"Tenure must be between 1 and {settings.MAX_TENURE}"
            )
        return value

    def validate(self, attrs):
        if attrs.get('interest_rate') is None:
            attrs['interest_rate'] = Decimal(str(settings.DEFAULT_INTEREST_RATE))

        try:
            self._totals = calculate_plan_totals(
                attrs['product'].price,
                attrs.get('down_payment') or Decimal('0.00'),
                attrs['interest_rate'],
                attrs['tenure'],
                attrs['start_date'],
                tenor_type=attrs.get('tenor_type', 'month'),
                finance_amount=attrs.get('finance_amount'),
            )
        except ValidationError as e:
            raise serializers.ValidationError(_error_message(e))
        return attrs

    def create(self, validated_data):
        user = self.context['request'].user
        totals = self._totals

        with transaction.atomic():
            product = Product.objects.select_for_update().get(pk=validated_data['product'].pk)
            if product.quantity < 1:
                raise serializers.ValidationError(f"{product.name} is out of stock")

            plan = InstallmentPlan.objects.create(
                product_price=product.price,
                financed_amount=totals['financed_amount'],
                emi_amount=totals['emi_amount'],
                total_payable=totals['total_payable'],
                total_interest=totals['total_interest'],
                remaining_installments=validated_data['tenure'],
                created_by=user if user.is_authenticated else None,
                **validated_data
            )
            persist_schedule(plan, totals['schedule'])
            update_plan_stats(plan)

            product.quantity -= 1
            product.save(update_fields=['quantity', 'updated_at'])

        logger.info(
            f"Plan {plan.id} created for customer {plan.customer_id}: "
            f"{plan.financed_amount} over {plan.tenure} {plan.tenor_type}(s), EMI {plan.emi_amount}"
        )
        return plan


class InstallmentPlanSerializer(serializers.ModelSerializer):
    schedule = RepaymentEntrySerializer(many=True, read_only=True)
    guarantors = PlanGuarantorSerializer(source='plan_guarantors', many=True, read_only=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    customer_phone = serializers.CharField(source='customer.phone', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    base_amount = serializers.ReadOnlyField()
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = InstallmentPlan
        fields = [
            'id', 'customer', 'customer_name', 'customer_phone',
            'product', 'product_name', 'product_price', 'finance_amount',
            'base_amount', 'down_payment', 'financed_amount', 'interest_rate',
            'tenure', 'tenor_type', 'emi_amount', 'total_payable', 'total_interest',
            'start_date', 'status', 'paid_installments', 'remaining_installments',
            'next_due_date', 'created_by_name', 'schedule', 'guarantors',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PlanPreviewSerializer(serializers.Serializer):
    product_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    finance_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    down_payment = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal('0.00'), default=Decimal('0.00')
    )
    interest_rate = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('100'), required=False
    )
    tenure = serializers.IntegerField(min_value=1)
    tenor_type = serializers.ChoiceField(choices=InstallmentPlan.TENOR_TYPE_CHOICES, default='month')
    start_date = serializers.DateField()

    def validate_tenure(self, value):
        if value > settings.MAX_TENURE:
            raise serializers.ValidationError(f"Tenure must be between 1 and {settings.MAX_TENURE}")
        return value


class PaymentSerializer(serializers.Serializer):
    installment_number = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    use_credit_balance = serializers.BooleanField(default=False)
