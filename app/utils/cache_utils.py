"""
Cache utilities for MNF Pick'em
Caches read-heavy JSON views and clears them when the underlying rows change
"""

import functools

from flask import current_app, request

from app import cache


def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path, query string and arguments"""
    path = request.path
    query = "_".join(f"{k}_{v}" for k, v in sorted(request.args.items()))
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{query}_{args_str}_{kwargs_str}".replace("/", "_")


def cached_route(timeout=300, key_prefix="view"):
    """
    Decorator for caching view return values

    Only use on views that return plain data (dicts/lists), not responses.

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


def invalidate_model_cache(model_name):
    """
    Invalidate cached views after rows of a model change

    Flask-Caching has no portable pattern delete, so the whole cache is
    cleared. model_name is only used in the log line.
    """
    try:
        cache.clear()
        current_app.logger.debug(f"Cache cleared after {model_name} change")
    except Exception as e:
        current_app.logger.error(f"Failed to clear cache: {e}")


def get_cache_stats():
    return {
        "type": current_app.config.get("CACHE_TYPE", "Unknown"),
        "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
    }
