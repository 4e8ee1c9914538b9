"""URL configuration for the cache_site project."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/object-cache/", include("object_cache.urls")),
]
