"""Business logic layer."""

from .memory_manager import MemoryManager

__all__ = ["MemoryManager"]
