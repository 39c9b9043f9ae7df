"""
Association Cache - Process-wide Caching Switch

`cached` associations only touch the cache store while caching is active.
The switch is process state with an explicit init/teardown, like the
connection pool lifecycle: init_caching() at startup, shutdown_caching()
at exit.
"""

import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes", "on")

_caching_active: bool = False


def _env_enabled() -> bool:
    return os.getenv("ASSOCIATION_CACHE_ENABLED", "true").lower() in _TRUTHY


def init_caching(enabled: Optional[bool] = None) -> bool:
    """Turn caching on or off. Falls back to ASSOCIATION_CACHE_ENABLED."""
    global _caching_active
    _caching_active = _env_enabled() if enabled is None else bool(enabled)
    logger.info("Association caching %s", "enabled" if _caching_active else "disabled")
    return _caching_active


def shutdown_caching() -> None:
    global _caching_active
    _caching_active = False
    logger.info("Association caching shut down")


def is_caching_active() -> bool:
    return _caching_active
