"""URL configuration for the ROBDESK project."""

from django.contrib import admin
from django.urls import path

from robdesk.views import health_check

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
]
