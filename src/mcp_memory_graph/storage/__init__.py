"""Scope storage backends: one durable unit per scope."""

from .base import ScopeState, ScopeStorage
from .factory import create_storage_instance
from .json_storage import JsonFileStorage
from .memory_storage import InMemoryStorage

__all__ = [
    "InMemoryStorage",
    "JsonFileStorage",
    "ScopeState",
    "ScopeStorage",
    "create_storage_instance",
]
