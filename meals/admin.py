from django.contrib import admin

from .models import DailyMealTracking, MealPlan


@admin.register(MealPlan)
class MealPlanAdmin(admin.ModelAdmin):
    list_display = ('plan_name', 'plan_code', 'meal_summary', 'base_price', 'currency', 'is_active', 'updated_at')
    list_filter = ('is_active', 'currency')
    search_fields = ('plan_name', 'plan_code', 'description')
    readonly_fields = ('created_by', 'created_at', 'updated_at')
    actions = ['activate_plans', 'deactivate_plans']

    fieldsets = (
        (None, {
            'fields': ('plan_name', 'plan_code', 'description', 'is_active')
        }),
        ('Meals', {
            'fields': ('meals',),
            'description': 'Per meal: true/false or {"enabled": true, "deliveryTime": "standard"}'
        }),
        ('Pricing', {
            'fields': ('base_price', 'currency')
        }),
        ('Audit', {
            'fields': ('created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def meal_summary(self, obj):
        return ', '.join(meal_type.title() for meal_type in obj.get_meal_types()) or '-'
    meal_summary.short_description = 'Meals'

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user.get_full_name()
        super().save_model(request, obj, form, change)

    def activate_plans(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f'{updated} meal plan(s) activated.')
    activate_plans.short_description = 'Activate selected plans'

    def deactivate_plans(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f'{updated} meal plan(s) deactivated.')
    deactivate_plans.short_description = 'Deactivate selected plans'


@admin.register(DailyMealTracking)
class DailyMealTrackingAdmin(admin.ModelAdmin):
    list_display = ('customer', 'date', 'attendance', 'feedback_rating', 'recorded_by')
    list_filter = ('attendance', 'date')
    search_fields = ('customer__name', 'customer__phone')
    raw_id_fields = ('customer', 'subscription')
    readonly_fields = ('attendance', 'created_at', 'updated_at')
    date_hierarchy = 'date'
