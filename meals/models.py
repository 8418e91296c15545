from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .services.meal_slots import MEAL_TYPES, normalize_meals


def default_plan_meals():
    return {meal_type: {'enabled': False, 'deliveryTime': 'standard'} for meal_type in MEAL_TYPES}


def default_currency():
    return settings.DEFAULT_CURRENCY


def default_tracked_meals():
    return {
        meal_type: {'served': False, 'consumed': False, 'servedTime': None, 'notes': ''}
        for meal_type in MEAL_TYPES
    }


class MealPlan(models.Model):
    """A monthly plan: which meals are delivered, when, and at what base price."""

    CURRENCY_CHOICES = [
        ('AED', 'UAE Dirham'),
        ('USD', 'US Dollar'),
        ('INR', 'Indian Rupee'),
    ]

    plan_name = models.CharField(max_length=100, unique=True)
    plan_code = models.CharField(max_length=20, unique=True)
    description = models.TextField(blank=True, max_length=500)
    # Each meal is a bool or {"enabled": bool, "deliveryTime": str}; read it via get_meal_slots()
    meals = models.JSONField(default=default_plan_meals)
    base_price = models.DecimalField(
        max_digits=10, decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    currency = models.CharField(max_length=3, choices=CURRENCY_CHOICES, default=default_currency)
    is_active = models.BooleanField(default=True)
    created_by = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'meal plan'
        verbose_name_plural = 'meal plans'
        ordering = ['plan_name']

    def __str__(self):
        return f"{self.plan_name} ({self.plan_code})"

    def save(self, *args, **kwargs):
        self.plan_code = self.plan_code.strip().upper()
        super().save(*args, **kwargs)

    def get_meal_slots(self):
        return normalize_meals(self.meals)

    def get_meal_types(self):
        """Enabled meal types, in breakfast/lunch/dinner order."""
        return [meal_type for meal_type, slot in self.get_meal_slots().items() if slot.enabled]

    @property
    def meal_count(self):
        return len(self.get_meal_types())


class DailyMealTracking(models.Model):
    """What was served to and eaten by one customer on one day."""

    ATTENDANCE_CHOICES = [
        ('present', 'Present'),
        ('absent', 'Absent'),
        ('partial', 'Partial'),
    ]

    customer = models.ForeignKey('customers.Customer', on_delete=models.CASCADE, related_name='meal_tracking')
    subscription = models.ForeignKey('billing.Subscription', on_delete=models.CASCADE, related_name='meal_tracking')
    date = models.DateField()
    meals = models.JSONField(default=default_tracked_meals)
    special_requests = models.TextField(blank=True, max_length=500)
    feedback_rating = models.PositiveSmallIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    feedback_comment = models.TextField(blank=True, max_length=500)
    attendance = models.CharField(max_length=10, choices=ATTENDANCE_CHOICES, default='absent')
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'daily meal tracking'
        verbose_name_plural = 'daily meal tracking'
        ordering = ['-date']
        constraints = [
            models.UniqueConstraint(fields=['customer', 'date'], name='unique_tracking_per_customer_day'),
        ]

    def __str__(self):
        return f"{self.customer.name} - {self.date} ({self.attendance})"

    def save(self, *args, **kwargs):
        self.attendance = self.derive_attendance()
        super().save(*args, **kwargs)

    def derive_attendance(self):
        meals = [self.meals.get(meal_type) or {} for meal_type in MEAL_TYPES]
        served = sum(1 for meal in meals if meal.get('served'))
        consumed = sum(1 for meal in meals if meal.get('served') and meal.get('consumed'))
        if served == 0 or consumed == 0:
            return 'absent'
        if consumed == served:
            return 'present'
        return 'partial'
