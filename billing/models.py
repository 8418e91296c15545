from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.utils import timezone

from meals.services.meal_slots import apply_overrides
from .services.proration import DISCOUNT_TYPE_CHOICES, PERCENTAGE, Discount

MONTH_VALIDATORS = [MinValueValidator(1), MaxValueValidator(12)]
YEAR_VALIDATORS = [MinValueValidator(2020), MaxValueValidator(2100)]


class Subscription(models.Model):
    """
    A customer's meal plan for an inclusive date range.

    The pricing block holds the monthly base price, the discount, and every
    figure the proration engine produced for the range. ``final_price`` is
    what the derived payment bills.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('paused', 'Paused'),
        ('cancelled', 'Cancelled'),
        ('completed', 'Completed'),
    ]

    customer = models.ForeignKey('customers.Customer', on_delete=models.CASCADE, related_name='subscriptions')
    meal_plan = models.ForeignKey('meals.MealPlan', on_delete=models.PROTECT, related_name='subscriptions')

    # Billing period tag
    month = models.PositiveSmallIntegerField(validators=MONTH_VALIDATORS)
    year = models.PositiveSmallIntegerField(validators=YEAR_VALIDATORS)
    start_date = models.DateField()
    end_date = models.DateField()

    # Pricing
    base_price_per_month = models.DecimalField(max_digits=10, decimal_places=2)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES, default=PERCENTAGE)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    discount_reason = models.CharField(max_length=200, blank=True)
    subscription_days = models.PositiveSmallIntegerField(default=0)
    month_days = models.PositiveSmallIntegerField(default=30)
    prorated_ratio = models.DecimalField(max_digits=7, decimal_places=4, default=Decimal('0'))
    prorated_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    final_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))

    # Per-meal on/off overrides; null keeps the plan default
    custom_meals = models.JSONField(default=dict, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    notes = models.TextField(blank=True, max_length=500)
    created_by = models.CharField(max_length=100, blank=True)
    updated_by = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'subscription'
        verbose_name_plural = 'subscriptions'
        ordering = ['-year', '-month', '-created_at']
        indexes = [
            models.Index(fields=['customer', 'start_date', 'end_date'], name='subscription_customer_span_idx'),
            models.Index(fields=['month', 'year', 'status'], name='subscription_period_idx'),
        ]

    def __str__(self):
        return f"{self.customer.name} - {self.meal_plan.plan_name} ({self.start_date} to {self.end_date})"

    def get_discount(self):
        return Discount(type=self.discount_type, value=self.discount_value, reason=self.discount_reason)

    def set_discount(self, discount):
        self.discount_type = discount.type
        self.discount_value = discount.value
        self.discount_reason = discount.reason

    def apply_proration(self, result):
        """Copy a ProrationResult onto the pricing block."""
        self.base_price_per_month = result.base_price_per_month
        self.subscription_days = result.subscription_days
        self.month_days = result.month_days
        self.prorated_ratio = result.prorated_ratio
        self.prorated_amount = result.prorated_amount
        self.discount_amount = result.discount_amount
        self.final_price = result.final_amount

    def get_effective_meals(self):
        return apply_overrides(self.meal_plan.get_meal_slots(), self.custom_meals)

    @property
    def period_label(self):
        return f"{self.start_date:%d %b %Y} – {self.end_date:%d %b %Y}"


class Payment(models.Model):
    """
    Amount billed to a customer for a period, and what has been paid so far.

    Status is recomputed from the amounts and the due date on every save.
    """

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('partial', 'Partial'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
    ]

    METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('upi', 'UPI'),
        ('bank_transfer', 'Bank Transfer'),
        ('card', 'Card'),
        ('cheque', 'Cheque'),
    ]

    OUTSTANDING_STATUSES = ['pending', 'partial', 'overdue']

    customer = models.ForeignKey('customers.Customer', on_delete=models.CASCADE, related_name='payments')
    # Set for payments derived from a subscription; manual payments leave it empty
    subscription = models.ForeignKey(
        Subscription, on_delete=models.RESTRICT,
        null=True, blank=True, related_name='payments',
    )
    month = models.PositiveSmallIntegerField(validators=MONTH_VALIDATORS)
    year = models.PositiveSmallIntegerField(validators=YEAR_VALIDATORS)
    period_start = models.DateField(null=True, blank=True)
    period_end = models.DateField(null=True, blank=True)
    plan_details = models.JSONField(default=dict, blank=True)

    amount_due = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    amount_paid = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    payment_status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='cash')
    payment_date = models.DateField(null=True, blank=True)
    due_date = models.DateField()
    transaction_id = models.CharField(max_length=100, blank=True)
    receipt_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True, max_length=500)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'payment'
        verbose_name_plural = 'payments'
        ordering = ['-year', '-month', '-created_at']
        indexes = [
            models.Index(fields=['customer', 'year', 'month'], name='payment_customer_period_idx'),
            models.Index(fields=['payment_status'], name='payment_status_idx'),
            models.Index(fields=['due_date'], name='payment_due_date_idx'),
        ]

    def __str__(self):
        return f"{self.customer.name} - {self.month}/{self.year} ({self.payment_status})"

    def save(self, *args, **kwargs):
        self.payment_status = self.derive_status()
        super().save(*args, **kwargs)

    def derive_status(self, today=None):
        today = today or timezone.localdate()
        if self.amount_paid >= self.amount_due:
            return 'paid'
        if self.amount_paid > 0:
            return 'partial'
        if today > self.due_date:
            return 'overdue'
        return 'pending'

    @property
    def balance(self):
        return max(Decimal('0'), self.amount_due - self.amount_paid)

    def record_installment(self, amount, payment_method='cash', transaction_id='', notes='', recorded_by=None, paid_date=None):
        """
        Add an installment, bump the paid total and stamp the payment date once settled.

        The row is re-read under a lock so concurrent installments add up;
        this instance is refreshed afterwards.
        """
        paid_date = paid_date or timezone.localdate()
        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=self.pk)
            installment = payment.installments.create(
                amount=amount,
                payment_method=payment_method,
                transaction_id=transaction_id,
                paid_date=paid_date,
                notes=notes,
                recorded_by=recorded_by,
            )
            payment.amount_paid += amount
            payment.payment_method = payment_method
            if transaction_id:
                payment.transaction_id = transaction_id
            if recorded_by is not None:
                payment.recorded_by = recorded_by
            if payment.amount_paid >= payment.amount_due:
                payment.payment_date = paid_date
            payment.save()
        self.refresh_from_db()
        return installment


class PaymentInstallment(models.Model):
    """One entry in a payment's history."""

    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='installments')
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    payment_method = models.CharField(max_length=20, choices=Payment.METHOD_CHOICES)
    transaction_id = models.CharField(max_length=100, blank=True)
    paid_date = models.DateField(default=timezone.localdate)
    notes = models.CharField(max_length=200, blank=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'payment installment'
        verbose_name_plural = 'payment installments'
        ordering = ['-paid_date', '-created_at']

    def __str__(self):
        return f"{self.amount} via {self.get_payment_method_display()} on {self.paid_date}"
