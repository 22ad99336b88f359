"""
Record store registry.

Store backends are registered by name and created through ``create_store``
so callers never import a concrete backend directly. ``memory`` and ``sql``
are registered at import time.
"""

import logging
from typing import Any, Callable, Optional

from vetscheduler.config import AppConfig, settings
from vetscheduler.store.base import (
    AVAILABILITY_WINDOWS,
    BOOKINGS,
    CLIENTS,
    PROFESSIONALS,
    SERVICES,
    SUBJECTS,
    RecordOperations,
    RecordStore,
)

logger = logging.getLogger(__name__)

_STORE_REGISTRY: dict[str, Callable[..., RecordStore]] = {}


def register_store(name: str, factory: Callable[..., RecordStore]) -> None:
    """Register a store factory by name."""
    _STORE_REGISTRY[name] = factory
    logger.debug("Store registered: %s", name)


def create_store(name: str, **kwargs: Any) -> RecordStore:
    """Create a store instance by registered name.

    Raises:
        KeyError: If the store name is not registered.
    """
    if name not in _STORE_REGISTRY:
        registered = list(_STORE_REGISTRY.keys())
        raise KeyError(f"Store '{name}' not registered. Available: {registered}")
    return _STORE_REGISTRY[name](**kwargs)


def get_registered_stores() -> list[str]:
    """Return names of all registered stores."""
    return list(_STORE_REGISTRY.keys())


def create_store_from_config(config: Optional[AppConfig] = None) -> RecordStore:
    """Pick the SQL store when DATABASE_URL is set, the in-memory store otherwise."""
    config = config or settings
    if config.store.database_url:
        return create_store("sql", url=config.store.database_url, echo=config.store.echo_sql)
    return create_store("memory")


def _auto_register() -> None:
    """Auto-register the built-in stores. Called once at import time."""
    from vetscheduler.store.memory import InMemoryRecordStore
    from vetscheduler.store.sql import SqlRecordStore

    register_store("memory", InMemoryRecordStore)
    register_store("sql", SqlRecordStore)


_auto_register()

__all__ = [
    "RecordStore", "RecordOperations",
    "PROFESSIONALS", "CLIENTS", "SUBJECTS", "SERVICES", "AVAILABILITY_WINDOWS", "BOOKINGS",
    "register_store", "create_store", "get_registered_stores", "create_store_from_config",
]
