"""Dataset access layer."""

from .base import BaseDataset, TableTransaction
from .memory import MemoryDataset

__all__ = [
    "BaseDataset",
    "TableTransaction",
    "MemoryDataset",
]
