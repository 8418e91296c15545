from django.urls import path

from . import views

urlpatterns = [
    # Meal plans
    path('meal-plans/', views.meal_plan_list, name='meal_plan_list'),
    path('meal-plans/delivery-time-options/', views.meal_delivery_time_options, name='meal_delivery_time_options'),
    path('meal-plans/<int:pk>/', views.meal_plan_detail, name='meal_plan_detail'),

    # Daily tracking
    path('daily-tracking/', views.tracking_list, name='tracking_list'),
    path('daily-tracking/attendance/', views.tracking_mark_attendance, name='tracking_mark_attendance'),
    path('daily-tracking/delivery-breakdown/', views.tracking_delivery_breakdown, name='tracking_delivery_breakdown'),
    path('daily-tracking/delivery-report/', views.tracking_delivery_report, name='tracking_delivery_report'),
    path('daily-tracking/stats/', views.tracking_stats, name='tracking_stats'),
]
