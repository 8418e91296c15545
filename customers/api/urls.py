from django.urls import path

from . import views

urlpatterns = [
    path('customers/', views.customer_list, name='customer_list'),
    path('customers/filter-options/', views.customer_filter_options, name='customer_filter_options'),
    path('customers/<int:pk>/', views.customer_detail, name='customer_detail'),
]
