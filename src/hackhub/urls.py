"""hackhub URL Configuration

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.1/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

import prize_pool.urls

urlpatterns = [
    path(
        "api/emergency-controls/",
        include(prize_pool.urls.emergency_controls_urlpatterns),
    ),
    path("api/distribution/", include(prize_pool.urls.distribution_urlpatterns)),
    path("health/", include("health_check.urls")),
    path("admin/", admin.site.urls),
]
