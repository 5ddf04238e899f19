"""
Caching utilities for expensive report queries.
Uses the Django cache framework (Redis when REDIS_URL is set).
"""
from django.conf import settings
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

REPORTS_CACHE_TTL = 600  # 10 minutes
REPORTS_CACHE_VERSION_KEY = 'reports:version'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def _reports_version():
    return cache.get_or_set(REPORTS_CACHE_VERSION_KEY, 1, None)


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="pnl")
        def build_report(start, end):
            return data

    Disabled unless settings.REPORTS_CACHE_ENABLED is true. Keys embed a
    version number so invalidate_reports_cache() drops every entry at once.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not getattr(settings, 'REPORTS_CACHE_ENABLED', False):
                return func(*args, **kwargs)

            cache_key = make_cache_key(f"{key_prefix}:v{_reports_version()}", *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def invalidate_reports_cache():
    """Invalidate every cached report by bumping the key version"""
    try:
        cache.incr(REPORTS_CACHE_VERSION_KEY)
    except ValueError:
        cache.set(REPORTS_CACHE_VERSION_KEY, 2, None)
    logger.debug("Reports cache invalidated")
