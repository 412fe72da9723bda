"""
Cache utilities for the Pick'em reconciler
Caches read-only API responses and drops them when standings change
"""

import functools

from flask import current_app, request

from pickem import cache

STANDINGS_KEY_PREFIX = "standings"


def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path and arguments"""
    path = request.path
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{args_str}_{kwargs_str}".replace("/", "_")


def cached_route(timeout=300, key_prefix="view"):
    """
    Decorator for caching route responses

    Only JSON-serialisable return values (dicts, lists) should be cached;
    the view is expected to return them for Flask to jsonify.

    Args:
        timeout: Cache timeout in seconds (default 5 minutes)
        key_prefix: Prefix for cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = f"{key_prefix}_{make_cache_key(*args, **kwargs)}"

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate cache keys matching a pattern

    Redis keys are deleted by pattern; other backends cannot enumerate keys,
    so the whole cache is cleared instead.

    Args:
        pattern: Glob-style pattern to match cache keys
    """
    try:
        backend = cache.cache
        client = getattr(backend, "_write_client", None)
        if client is not None:
            prefix = getattr(backend, "key_prefix", "") or ""
            keys = list(client.scan_iter(match=f"{prefix}{pattern}"))
            if keys:
                client.delete(*keys)
            current_app.logger.info(
                f"Cache invalidated for pattern: {pattern} ({len(keys)} keys)"
            )
        else:
            cache.clear()
            current_app.logger.info(f"Cache cleared for pattern: {pattern}")
    except Exception as e:
        current_app.logger.error(f"Failed to clear cache: {e}")


def invalidate_standings_cache():
    """Drop every cached standings response"""
    invalidate_cache_pattern(f"{STANDINGS_KEY_PREFIX}_*")

