"""
Store registry — maps a backend name from config to a store class.

Built-in backends are addressed by short name; anything else is treated as a
fully qualified class path so third-party stores can be plugged in.
"""

from __future__ import annotations

import importlib
import logging
from datetime import datetime
from typing import Any, Callable

from paycadence.config import StoreConfig
from paycadence.errors import StorageError
from paycadence.stores.base import BaseExpenseStore

logger = logging.getLogger("paycadence.stores.registry")

# Built-in store type mapping
_BUILTIN_STORES: dict[str, str] = {
    "memory": "paycadence.stores.memory.InMemoryStore",
    "sql": "paycadence.stores.sql.SQLStore",
}


def available_backends() -> list[str]:
    return sorted(_BUILTIN_STORES)


def load_store_class(backend: str) -> type[BaseExpenseStore]:
    """Resolve ``backend`` to a store class.

    Raises:
        StorageError: if the class cannot be imported or is not a store.
    """
    store_path = _BUILTIN_STORES.get(backend, backend)
    try:
        module_path, class_name = store_path.rsplit(".", 1)
        module = importlib.import_module(module_path)
        store_cls = getattr(module, class_name)
    except (ValueError, ImportError, AttributeError) as e:
        raise StorageError(f"Cannot load store '{backend}': {e}") from e

    if not (isinstance(store_cls, type) and issubclass(store_cls, BaseExpenseStore)):
        raise StorageError(f"'{backend}' is not a BaseExpenseStore subclass")
    return store_cls


def create_store(
    config: StoreConfig,
    now: Callable[[], datetime] | None = None,
) -> BaseExpenseStore:
    """Instantiate the store described by ``config``."""
    store_cls = load_store_class(config.backend)
    kwargs: dict[str, Any] = dict(config.options)
    if now is not None:
        kwargs["now"] = now
    if config.backend == "sql" or store_cls.name == "sql":
        kwargs.setdefault("url", config.url)
        kwargs.setdefault("echo", config.echo)

    store = store_cls(**kwargs)
    logger.info("Using store: %s", store.name)
    return store
