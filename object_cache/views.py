"""
Object cache API views.

Provides REST API endpoints for staff to inspect and maintain the cache:
- GET /api/object-cache/stats - Statistics of the request's cache instance
- POST /api/object-cache/flush - Delete every cached row
- POST /api/object-cache/expire - Delete expired rows

All endpoints require a staff user.
"""

import logging

from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import ObjectCacheError
from .serializers import CacheActionSerializer, CacheStatsSerializer
from .shortcuts import get_object_cache

logger = logging.getLogger(__name__)


def _request_cache(request):
    object_cache = getattr(request, 'object_cache', None)
    if object_cache is None:
        object_cache = get_object_cache()
    return object_cache


class CacheStatsView(APIView):
    """
    Get hit/miss statistics of the request's cache instance.

    Returns:
        200 OK: {cache_hits: int, cache_misses: int, groups: {...}, ready: bool}
        401/403: Not authenticated or not staff
    """

    permission_classes = [IsAdminUser]

    def get(self, request):
        """Get statistics of the request's cache instance."""
        object_cache = _request_cache(request)

        data = object_cache.stats()
        data['ready'] = object_cache.is_ready

        serializer = CacheStatsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class CacheFlushView(APIView):
    """
    Delete every cached row and reinitialize the request's cache instance.

    Returns:
        200 OK: {flushed: true, message: str}
        401/403: Not authenticated or not staff
        503 Service Unavailable: Cache store failure
    """

    permission_classes = [IsAdminUser]

    def post(self, request):
        """Flush the cache."""
        try:
            flushed = _request_cache(request).flush()
        except ObjectCacheError as e:
            logger.error(
                f"Error flushing object cache for user {request.user.id}: {e}",
                exc_info=True
            )
            return Response(
                {'error': 'Failed to flush cache'},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )

        logger.info(f"Object cache flushed via API - user_id={request.user.id}")

        serializer = CacheActionSerializer({
            'flushed': flushed,
            'message': 'Cache flushed successfully',
        })
        return Response(serializer.data, status=status.HTTP_200_OK)


class CacheExpireView(APIView):
    """
    Delete cached rows that have expired.

    Returns:
        200 OK: {expired: true, message: str}
        401/403: Not authenticated or not staff
        503 Service Unavailable: Cache store failure
    """

    permission_classes = [IsAdminUser]

    def post(self, request):
        """Sweep expired rows."""
        try:
            _request_cache(request).expire()
        except ObjectCacheError as e:
            logger.error(
                f"Error expiring object cache for user {request.user.id}: {e}",
                exc_info=True
            )
            return Response(
                {'error': 'Failed to expire cache'},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )

        serializer = CacheActionSerializer({
            'expired': True,
            'message': 'Expired cache entries removed',
        })
        return Response(serializer.data, status=status.HTTP_200_OK)
