"""
URL configuration for accounts.

Token issuance is delegated to djangorestframework-simplejwt; the rest of
the API consumes the authenticated principal (id and role).

Endpoints:
    POST /api/v1/auth/token/          - Obtain access/refresh pair
    POST /api/v1/auth/token/refresh/  - Refresh access token
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

app_name = "accounts"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
]
