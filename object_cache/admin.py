from django.contrib import admin
from django.template.defaultfilters import filesizeformat

from .models import CacheEntry


class CacheEntryAdmin(admin.ModelAdmin):
    list_display = ("cache_group", "cache_key", "ttl", "size_display", "expires_at")
    search_fields = ("cache_group", "cache_key")
    list_filter = ("cache_group",)
    readonly_fields = ("cache_group", "cache_key", "data", "ttl", "size", "expires_at")

    @admin.display(description="Size", ordering="size")
    def size_display(self, obj):
        return filesizeformat(obj.size)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


admin.site.register(CacheEntry, CacheEntryAdmin)
