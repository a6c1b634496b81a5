"""
URL configuration for the backend.
"""

from django.urls import path

from apps.accounts.webhooks import stytch_webhook

from .api import api

urlpatterns = [
    path("api/v1/", api.urls),
    # Webhooks - outside Django Ninja for raw request handling
    path("webhooks/stytch/", stytch_webhook, name="stytch-webhook"),
]
