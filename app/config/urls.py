"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair (simplejwt)
    /api/v1/auth/token/refresh/    - Refresh JWT access token
    /api/v1/contracts/             - Contract endpoints
        {id}/force-activate/       - Activate without waiting for signatures (POST)
        {id}/cancel/               - Cancel contract and open installments (POST)
        webhooks/esignature/       - E-signature provider webhook endpoint (POST)
    /api/v1/payments/              - Payment endpoints
        orders/{id}/charge/        - Issue the charge for an installment (POST)
        withdrawals/               - Landlord manual withdrawal (POST)
        webhooks/payment-gateway/  - Payment gateway webhook endpoint (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Contracts
    path("contracts/", include("contracts.urls")),
    # Payments
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Rental Payments Admin"
admin.site.site_title = "Rental Payments"
admin.site.index_title = "Contracts, installments and payouts"
