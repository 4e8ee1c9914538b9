"""
Middleware that gives every request its own object cache instance.

This middleware intercepts requests to:
- Resolve the active tenant for the request
- Build a fresh ObjectCache and make it current for the handling thread
- Expose the instance as ``request.object_cache``
- Add hit/miss headers to the response
- Release the instance once the response leaves

Example Usage:
    # In Django settings.py MIDDLEWARE list:
    MIDDLEWARE = [
        ...
        'django.contrib.auth.middleware.AuthenticationMiddleware',
        'object_cache.middleware.ObjectCacheMiddleware',
        ...
    ]

    # In a view:
    def my_view(request):
        totals = request.object_cache.get('totals', 'reports')
"""

import logging

from django.utils.deprecation import MiddlewareMixin

from object_cache.conf import get_config
from object_cache.shortcuts import init_cache, release_object_cache

logger = logging.getLogger(__name__)


class ObjectCacheMiddleware(MiddlewareMixin):
    """
    Middleware that manages the per-request object cache.

    Request Attributes Set:
        request.object_cache (ObjectCache): The request's cache instance

    Response Headers Added:
        X-Object-Cache-Hits: Cache hits during the request
        X-Object-Cache-Misses: Cache misses during the request
    """

    def _resolve_tenant(self, request) -> int:
        config = get_config()
        resolver = config.get_tenant_resolver()

        if resolver is None:
            return config.default_tenant_id

        tenant_id = resolver(request)
        if tenant_id is None:
            return config.default_tenant_id
        return int(tenant_id)

    def process_request(self, request):
        """
        Build the request's cache instance.

        Args:
            request: Django HttpRequest object

        Returns:
            None (modifies request in place)
        """
        tenant_id = self._resolve_tenant(request)
        request.object_cache = init_cache(tenant_id)

        logger.debug(
            f"Object cache attached - operation=request_init, tenant_id={tenant_id}, "
            f"ready={request.object_cache.is_ready}, path={request.path}"
        )

    def process_response(self, request, response):
        """
        Add hit/miss headers and release the request's cache instance.

        Args:
            request: Django HttpRequest object
            response: Django HttpResponse object

        Returns:
            Modified HttpResponse with cache headers added
        """
        object_cache = getattr(request, "object_cache", None)

        if object_cache is not None:
            stats = object_cache.stats()
            response["X-Object-Cache-Hits"] = str(stats["cache_hits"])
            response["X-Object-Cache-Misses"] = str(stats["cache_misses"])
            object_cache.close()

        release_object_cache()
        return response
