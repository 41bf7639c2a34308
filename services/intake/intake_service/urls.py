"""URL configuration for the intake service."""
from django.urls import include, path

urlpatterns = [
    path("api/", include("taxonomy.urls")),
    path("api/", include("forms.urls")),
]
