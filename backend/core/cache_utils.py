"""
Caching utilities for storefront catalogue reads
Uses Redis (django-redis) in production, local memory elsewhere
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
PRODUCTS_LIST_CACHE_TTL = 120  # 2 minutes
PRODUCT_DETAIL_CACHE_TTL = 300  # 5 minutes

PRODUCTS_CACHE_PREFIX = 'products'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern.

    Uses Redis SCAN when django-redis is the backend. Other backends
    cannot list keys, so the whole cache is cleared instead.
    """
    if not cache.__class__.__module__.startswith('django_redis'):
        cache.clear()
        return
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def get_cached_products_list(filters_dict):
    """
    Get cached products list with filters
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = make_cache_key(f"{PRODUCTS_CACHE_PREFIX}:list", **filters_dict)
    return cache.get(cache_key), cache_key


def cache_products_list(cache_key, data, ttl=PRODUCTS_LIST_CACHE_TTL):
    """Cache products list data"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached products list: {cache_key}")


def get_cached_product_detail(slug):
    cache_key = make_cache_key(f"{PRODUCTS_CACHE_PREFIX}:detail", slug)
    return cache.get(cache_key), cache_key


def cache_product_detail(cache_key, data, ttl=PRODUCT_DETAIL_CACHE_TTL):
    cache.set(cache_key, data, ttl)


def invalidate_products_cache():
    invalidate_cache_pattern(f"{PRODUCTS_CACHE_PREFIX}:")
