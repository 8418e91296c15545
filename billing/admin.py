from django.contrib import admin, messages

from .exceptions import BillingError
from .models import Payment, PaymentInstallment, Subscription
from .services import reconciliation


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """
    Subscriptions are priced by the proration engine, so the computed
    pricing fields are read-only here. Edits made through this form bypass
    the payment lock; the API enforces it.
    """

    list_display = ('customer', 'meal_plan', 'start_date', 'end_date', 'month', 'year', 'final_price', 'status')
    list_filter = ('status', 'year', 'month', 'meal_plan')
    search_fields = ('customer__name', 'customer__full_phone_number', 'meal_plan__plan_name')
    raw_id_fields = ('customer',)
    date_hierarchy = 'start_date'
    actions = ['cancel_subscriptions', 'generate_missing_payments']
    readonly_fields = (
        'subscription_days', 'month_days', 'prorated_ratio', 'prorated_amount',
        'discount_amount', 'final_price', 'created_by', 'updated_by', 'created_at', 'updated_at',
    )

    fieldsets = (
        (None, {
            'fields': ('customer', 'meal_plan', 'status', 'notes')
        }),
        ('Period', {
            'fields': (('month', 'year'), ('start_date', 'end_date'))
        }),
        ('Pricing', {
            'fields': (
                'base_price_per_month',
                ('discount_type', 'discount_value', 'discount_reason'),
                ('subscription_days', 'month_days', 'prorated_ratio'),
                ('prorated_amount', 'discount_amount', 'final_price'),
            )
        }),
        ('Meal Overrides', {
            'fields': ('custom_meals',),
            'classes': ('collapse',)
        }),
        ('Audit', {
            'fields': ('created_by', 'updated_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def save_model(self, request, obj, form, change):
        reconciliation.price_subscription(obj)
        if change:
            obj.updated_by = request.user.get_full_name()
        else:
            obj.created_by = request.user.get_full_name()
        super().save_model(request, obj, form, change)

    def cancel_subscriptions(self, request, queryset):
        for subscription in queryset:
            reconciliation.cancel_subscription(subscription, updated_by=request.user.get_full_name())
        self.message_user(request, f'{queryset.count()} subscription(s) cancelled.')
    cancel_subscriptions.short_description = 'Cancel selected subscriptions'

    def generate_missing_payments(self, request, queryset):
        results = reconciliation.generate_missing_payments(recorded_by=request.user)
        self.message_user(request, results.summary('Payment generation'))
    generate_missing_payments.short_description = 'Generate missing payments (all active subscriptions)'

    def delete_model(self, request, obj):
        try:
            reconciliation.delete_subscription(obj)
        except BillingError as e:
            self.message_user(request, e.message, level=messages.ERROR)


class PaymentInstallmentInline(admin.TabularInline):
    model = PaymentInstallment
    extra = 0
    readonly_fields = ('created_at',)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('customer', 'month', 'year', 'amount_due', 'amount_paid', 'payment_status', 'due_date', 'payment_date')
    list_filter = ('payment_status', 'payment_method', 'year', 'month')
    search_fields = ('customer__name', 'customer__full_phone_number', 'transaction_id', 'receipt_number')
    raw_id_fields = ('customer', 'subscription')
    readonly_fields = ('payment_status', 'plan_details', 'recorded_by', 'created_at', 'updated_at')
    inlines = [PaymentInstallmentInline]
    actions = ['refresh_status']

    fieldsets = (
        (None, {
            'fields': ('customer', 'subscription', ('month', 'year'), ('period_start', 'period_end'))
        }),
        ('Amounts', {
            'fields': ('amount_due', 'amount_paid', 'payment_status')
        }),
        ('Payment', {
            'fields': ('payment_method', 'payment_date', 'due_date', 'transaction_id', 'receipt_number', 'notes')
        }),
        ('Plan Snapshot', {
            'fields': ('plan_details',),
            'classes': ('collapse',)
        }),
        ('Audit', {
            'fields': ('recorded_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def refresh_status(self, request, queryset):
        for payment in queryset:
            payment.save(update_fields=['payment_status', 'updated_at'])
        self.message_user(request, f'Status refreshed for {queryset.count()} payment(s).')
    refresh_status.short_description = 'Recalculate status (e.g. mark overdue)'
