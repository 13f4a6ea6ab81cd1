# curriculum/cache.py
from __future__ import annotations

import hashlib
import json
from typing import Any, Callable, Dict

from django.conf import settings
from django.core.cache import cache

NAMESPACE = "curriculum"


def _version_key(namespace: str) -> str:
    return f"{namespace}:version"


def _current_version(namespace: str) -> int:
    version = cache.get(_version_key(namespace))
    if version is None:
        cache.add(_version_key(namespace), 1, timeout=None)
        version = cache.get(_version_key(namespace), 1)
    return version


def cache_key(namespace: str, name: str, params: Dict[str, Any]) -> str:
    """Key derived from the query parameters; empty values are ignored so {} and {"status": ""} share an entry."""
    normalized = {k: str(v) for k, v in sorted(params.items()) if v not in (None, "")}
    digest = hashlib.sha1(json.dumps(normalized, sort_keys=True).encode("utf-8")).hexdigest()
    return f"{namespace}:v{_current_version(namespace)}:{name}:{digest}"


def cached_query(name: str, params: Dict[str, Any], loader: Callable[[], Any], namespace: str = NAMESPACE) -> Any:
    key = cache_key(namespace, name, params)
    hit = cache.get(key)
    if hit is not None:
        return hit
    value = loader()
    cache.set(key, value, timeout=settings.CURRICULUM_CACHE_TIMEOUT)
    return value


def invalidate(namespace: str = NAMESPACE) -> None:
    """Bump the namespace version; older entries become unreachable and expire on their own."""
    try:
        cache.incr(_version_key(namespace))
    except ValueError:
        cache.set(_version_key(namespace), 2, timeout=None)
