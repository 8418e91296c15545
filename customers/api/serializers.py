from rest_framework import serializers

from customers.models import Customer


class CustomerSerializer(serializers.ModelSerializer):
    full_address = serializers.CharField(source='get_full_address', read_only=True)

    class Meta:
        model = Customer
        fields = [
            'id', 'name', 'country_code', 'phone', 'full_phone_number', 'email', 'emirate',
            'area', 'building_name', 'flat_number', 'street', 'landmark', 'city',
            'latitude', 'longitude', 'full_address',
            'join_date', 'is_active', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = ['full_phone_number', 'created_at', 'updated_at']
        # Duplicate contacts are rejected by customers.services with a specific message
        extra_kwargs = {'email': {'validators': []}}


class CustomerSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'name', 'phone', 'full_phone_number', 'email', 'building_name', 'flat_number', 'area']
