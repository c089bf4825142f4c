"""URL configuration for the delivery engine project."""

from django.urls import include, path

urlpatterns = [
    path("api/v1/delivery/", include("delivery.urls")),
]
