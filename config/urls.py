import os
from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

# Admin URL path - can be rotated via environment variable
ADMIN_URL = os.getenv('ADMIN_URL', 'admin/')

urlpatterns = [
    path(ADMIN_URL, admin.site.urls),
    path('api/v1/auth/token/', TokenObtainPairView.as_view(), name='token_obtain'),
    path('api/v1/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/v1/', include('customers.api.urls')),
    path('api/v1/', include('meals.api.urls')),
    path('api/v1/', include('billing.api.urls')),
]
