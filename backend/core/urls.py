"""
Root URL configuration.

The ledger API is mounted under ``/api/``; DRF's browsable login views
under ``/api/auth/``.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("ledger.urls")),
    path("api/auth/", include("rest_framework.urls")),
]
