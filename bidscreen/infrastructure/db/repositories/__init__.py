from .base import BaseRepository
from .local_store import LocalStoreRepository

__all__ = ["BaseRepository", "LocalStoreRepository"]
