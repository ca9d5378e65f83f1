from rest_framework import serializers
from .models import Party, CreditRegisterEntry


class PartySerializer(serializers.ModelSerializer):
    available_credit = serializers.SerializerMethodField()

    class Meta:
        model = Party
        fields = [
            'id', 'full_name', 'guardian_name', 'phone', 'national_id',
            'email', 'address', 'city', 'picture', 'role',
            'available_credit', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_available_credit(self, obj):
        if obj.role != 'customer':
            return None
        return obj.available_credit

    def validate_full_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Name is required")
        return value.strip()


class PartySearchSerializer(serializers.ModelSerializer):
    class Meta:
        model = Party
        fields = [
            'id', 'full_name', 'guardian_name', 'phone', 'national_id',
            'address', 'email', 'city', 'picture', 'role'
        ]


class CreditRegisterEntrySerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = CreditRegisterEntry
        fields = [
            'id', 'customer', 'transaction_type', 'amount', 'description',
            'reference_id', 'reference_type', 'created_by_name', 'created_at'
        ]
        read_only_fields = ['id', 'customer', 'created_by_name', 'created_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0")
        return value
