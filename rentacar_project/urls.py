from __future__ import annotations

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("accounts/", include("django.contrib.auth.urls")),
    path("api/", include("rentacar.urls")),
    path("admin/", admin.site.urls),
]
