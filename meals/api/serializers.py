from decimal import Decimal

from rest_framework import serializers

from meals.models import DailyMealTracking, MealPlan
from meals.services.meal_slots import MEAL_TYPES, validate_meals


class MealPlanSerializer(serializers.ModelSerializer):
    meal_types = serializers.ListField(source='get_meal_types', read_only=True)
    meal_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = MealPlan
        fields = [
            'id', 'plan_name', 'plan_code', 'description', 'meals', 'meal_types', 'meal_count',
            'base_price', 'currency', 'is_active', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']
        # Name/code clashes are reported by the view with specific messages
        extra_kwargs = {
            'plan_name': {'validators': []},
            'plan_code': {'validators': []},
        }

    def validate_meals(self, value):
        """Accept bool or {enabled, deliveryTime} per meal; store the canonical dict form."""
        if not isinstance(value, dict):
            raise serializers.ValidationError('Meals must be an object keyed by meal type')
        try:
            slots = validate_meals(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))
        if not any(slot.enabled for slot in slots.values()):
            raise serializers.ValidationError('At least one meal must be enabled')
        return {meal_type: slot.as_dict() for meal_type, slot in slots.items()}

    def validate_base_price(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError('Base price cannot be negative')
        return value


class MealPlanSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = MealPlan
        fields = ['id', 'plan_name', 'plan_code', 'base_price', 'currency', 'meals']


class MarkAttendanceSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField()
    date = serializers.DateField()
    meal_type = serializers.ChoiceField(choices=[(meal_type, meal_type.title()) for meal_type in MEAL_TYPES])
    attended = serializers.BooleanField()


class DailyMealTrackingSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)

    class Meta:
        model = DailyMealTracking
        fields = [
            'id', 'customer', 'customer_name', 'subscription', 'date', 'meals', 'special_requests',
            'feedback_rating', 'feedback_comment', 'attendance', 'created_at', 'updated_at',
        ]
        read_only_fields = fields
