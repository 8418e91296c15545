from django.contrib import admin

from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ('name', 'full_phone_number', 'email', 'emirate', 'building_name', 'flat_number', 'is_active', 'join_date')
    list_filter = ('is_active', 'emirate', 'join_date')
    search_fields = ('name', 'phone', 'full_phone_number', 'email', 'building_name', 'flat_number', 'area')
    readonly_fields = ('full_phone_number', 'updated_by', 'created_at', 'updated_at')
    ordering = ('-created_at',)

    fieldsets = (
        ('Contact', {
            'fields': ('name', ('country_code', 'phone'), 'full_phone_number', 'email', 'emirate')
        }),
        ('Delivery Address', {
            'fields': (
                'area', 'building_name', 'flat_number', 'street', 'landmark', 'city',
                ('latitude', 'longitude'),
            )
        }),
        ('Status', {
            'fields': ('join_date', 'is_active', 'notes')
        }),
        ('Audit', {
            'fields': ('updated_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)
