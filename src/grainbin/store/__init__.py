"""Persistence backends for bins and system settings."""

from .base import BinStore, Document
from .factory import create_store

__all__ = [
    "BinStore",
    "Document",
    "create_store",
]
