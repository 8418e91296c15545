from decimal import Decimal

from rest_framework import serializers

from billing.models import Payment, PaymentInstallment, Subscription
from billing.services.proration import DISCOUNT_TYPE_CHOICES, PERCENTAGE
from customers.api.serializers import CustomerSummarySerializer
from meals.api.serializers import MealPlanSummarySerializer


class DiscountSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=DISCOUNT_TYPE_CHOICES, default=PERCENTAGE)
    value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), default=Decimal('0'))
    reason = serializers.CharField(required=False, allow_blank=True, max_length=200, default='')

    def validate(self, data):
        if data.get('type', PERCENTAGE) == PERCENTAGE and data.get('value', 0) > 100:
            raise serializers.ValidationError({'value': 'Percentage discount cannot exceed 100'})
        return data


class CustomMealsSerializer(serializers.Serializer):
    """Per-meal overrides; null keeps the plan default."""
    breakfast = serializers.BooleanField(required=False, allow_null=True, default=None)
    lunch = serializers.BooleanField(required=False, allow_null=True, default=None)
    dinner = serializers.BooleanField(required=False, allow_null=True, default=None)


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class SubscriptionSerializer(serializers.ModelSerializer):
    customer = CustomerSummarySerializer(read_only=True)
    meal_plan = MealPlanSummarySerializer(read_only=True)
    pricing = serializers.SerializerMethodField()
    effective_meals = serializers.SerializerMethodField()
    subscription_period = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            'id', 'customer', 'meal_plan', 'subscription_period', 'start_date', 'end_date',
            'pricing', 'custom_meals', 'effective_meals', 'status', 'notes',
            'created_by', 'updated_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_pricing(self, obj):
        return {
            'base_price_per_month': obj.base_price_per_month,
            'discount': obj.get_discount().as_dict(),
            'final_price': obj.final_price,
            'prorated_amount': obj.prorated_amount,
            'discount_amount': obj.discount_amount,
            'subscription_days': obj.subscription_days,
            'month_days': obj.month_days,
            'prorated_ratio': obj.prorated_ratio,
        }

    def get_effective_meals(self, obj):
        return {meal_type: slot.as_dict() for meal_type, slot in obj.get_effective_meals().items()}

    def get_subscription_period(self, obj):
        return {'month': obj.month, 'year': obj.year}


class SubscriptionCreateSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField()
    meal_plan_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)
    year = serializers.IntegerField(required=False, min_value=2020, max_value=2100)
    base_price_per_month = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True,
    )
    discount = DiscountSerializer(required=False, allow_null=True)
    custom_meals = CustomMealsSerializer(required=False)
    status = serializers.ChoiceField(choices=Subscription.STATUS_CHOICES, default='active')
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')

    def validate(self, data):
        if data['end_date'] < data['start_date']:
            raise serializers.ValidationError({'end_date': 'End date must be on or after the start date'})
        return data


class SubscriptionUpdateSerializer(serializers.Serializer):
    meal_plan_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)
    year = serializers.IntegerField(required=False, min_value=2020, max_value=2100)
    base_price_per_month = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True,
    )
    discount = DiscountSerializer(required=False, allow_null=True)
    custom_meals = CustomMealsSerializer(required=False)
    status = serializers.ChoiceField(choices=Subscription.STATUS_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)


class PricingPreviewSerializer(serializers.Serializer):
    meal_plan_id = serializers.IntegerField()
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    base_price_per_month = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True,
    )
    discount = DiscountSerializer(required=False, allow_null=True)

    def validate(self, data):
        start, end = data.get('start_date'), data.get('end_date')
        if bool(start) != bool(end):
            raise serializers.ValidationError('Provide both start_date and end_date, or neither')
        if start and end < start:
            raise serializers.ValidationError({'end_date': 'End date must be on or after the start date'})
        return data


class AutoExtendSerializer(serializers.Serializer):
    target_month = serializers.IntegerField(required=False, min_value=1, max_value=12)
    target_year = serializers.IntegerField(required=False, min_value=2020, max_value=2100)
    created_by = serializers.CharField(required=False, allow_blank=True, max_length=100)


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentInstallmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentInstallment
        fields = ['id', 'amount', 'payment_method', 'transaction_id', 'paid_date', 'notes', 'created_at']
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    customer = CustomerSummarySerializer(read_only=True)
    installments = PaymentInstallmentSerializer(many=True, read_only=True)
    balance = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'customer', 'subscription', 'month', 'year', 'period_start', 'period_end',
            'plan_details', 'amount_due', 'amount_paid', 'balance', 'payment_status',
            'payment_method', 'payment_date', 'due_date', 'transaction_id', 'receipt_number',
            'notes', 'installments', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PaymentCreateSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField()
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField(min_value=2020, max_value=2100)
    amount_due = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))
    amount_paid = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), default=Decimal('0'))
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, default='cash')
    due_date = serializers.DateField(required=False)
    payment_date = serializers.DateField(required=False, allow_null=True)
    transaction_id = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    receipt_number = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')
    plan_details = serializers.DictField(required=False)

    def validate(self, data):
        if not data.get('due_date'):
            if not data.get('payment_date'):
                raise serializers.ValidationError({'due_date': 'A due date or payment date is required'})
            data['due_date'] = data['payment_date']
        return data


class PaymentUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            'month', 'year', 'amount_due', 'amount_paid', 'payment_method', 'payment_date',
            'due_date', 'transaction_id', 'receipt_number', 'notes',
        ]


class RecordPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    transaction_id = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    notes = serializers.CharField(required=False, allow_blank=True, max_length=200, default='')
