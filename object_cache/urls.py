"""
Object cache API URL configuration.

Defines URL patterns for cache reporting and maintenance endpoints:
- GET /api/object-cache/stats/ - Hit/miss statistics of the request's cache
- POST /api/object-cache/flush/ - Delete every cached row
- POST /api/object-cache/expire/ - Delete expired rows
"""

from django.urls import path

from .views import CacheExpireView, CacheFlushView, CacheStatsView

app_name = 'object_cache'

urlpatterns = [
    path('stats/', CacheStatsView.as_view(), name='stats'),
    path('flush/', CacheFlushView.as_view(), name='flush'),
    path('expire/', CacheExpireView.as_view(), name='expire'),
]
