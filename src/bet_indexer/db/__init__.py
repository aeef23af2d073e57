"""Database layer."""

from .models import SCHEMA
from .repository import Repository, StorageError, StoredBet, TransientStorageError

__all__ = ["SCHEMA", "Repository", "StoredBet", "StorageError", "TransientStorageError"]
