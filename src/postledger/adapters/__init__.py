"""Package for concrete implementations of account storage"""

from .memory import MemoryStorage

__all__ = ["MemoryStorage"]
