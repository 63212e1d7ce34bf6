"""Stores package — persistence backends."""
from paycadence.stores.base import BaseExpenseStore
from paycadence.stores.memory import InMemoryStore
from paycadence.stores.registry import create_store
from paycadence.stores.sql import SQLStore

__all__ = [
    "BaseExpenseStore",
    "InMemoryStore",
    "SQLStore",
    "create_store",
]
