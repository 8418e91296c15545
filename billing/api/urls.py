from django.urls import path

from . import views

urlpatterns = [
    # Subscriptions
    path('subscriptions/', views.subscription_list, name='subscription_list'),
    path('subscriptions/stats/', views.subscription_stats, name='subscription_stats'),
    path('subscriptions/reports/weekly/', views.subscription_weekly_report, name='subscription_weekly_report'),
    path('subscriptions/calculate-pricing/', views.subscription_calculate_pricing, name='subscription_calculate_pricing'),
    path('subscriptions/auto-extend/', views.subscription_auto_extend, name='subscription_auto_extend'),
    path('subscriptions/auto-extend/eligible/', views.subscription_auto_extend_eligible, name='subscription_auto_extend_eligible'),
    path('subscriptions/generate-payments/', views.subscription_generate_payments, name='subscription_generate_payments'),
    path('subscriptions/customer/<int:customer_id>/', views.customer_subscriptions, name='customer_subscriptions'),
    path('subscriptions/<int:pk>/', views.subscription_detail, name='subscription_detail'),
    path('subscriptions/<int:pk>/cancel/', views.subscription_cancel, name='subscription_cancel'),
    path('subscriptions/<int:pk>/check-payments/', views.subscription_check_payments, name='subscription_check_payments'),

    # Payments
    path('payments/', views.payment_list, name='payment_list'),
    path('payments/stats/', views.payment_stats, name='payment_stats'),
    path('payments/reports/monthly/', views.payment_monthly_report, name='payment_monthly_report'),
    path('payments/reports/yearly/', views.payment_yearly_report, name='payment_yearly_report'),
    path('payments/<int:pk>/', views.payment_detail, name='payment_detail'),
    path('payments/<int:pk>/record/', views.payment_record, name='payment_record'),
]
