# cipherledger/storage/__init__.py
"""
Persistence sinks for completed message records.
"""

from abc import ABC, abstractmethod
from typing import List
from pathlib import Path
from cipherledger.core.types import MessageRecord


class StorageBackend(ABC):
    """Abstract base for all persistence sinks."""

    @abstractmethod
    def append(self, record: MessageRecord) -> None:
        pass

    @abstractmethod
    def load_records(self) -> List[MessageRecord]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def create_storage(uri: str) -> StorageBackend:
    """
    json://path/to/messages.json  -> JsonFileStorage
    sqlite://path/to/records.db   -> SQLiteStorage
    A bare path picks JSON when it ends in .json, SQLite otherwise.
    """
    uri = uri.strip()
    if not uri:
        raise ValueError("Empty storage URI")

    if uri.startswith("json://"):
        from .jsonfile import JsonFileStorage
        return JsonFileStorage(Path(uri[len("json://"):]).resolve())

    elif uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        return SQLiteStorage(Path(uri[len("sqlite://"):]).resolve())

    elif "://" in uri:
        raise ValueError(f"Unsupported storage URI: {uri}")

    elif uri.endswith(".json"):
        from .jsonfile import JsonFileStorage
        return JsonFileStorage(Path(uri).resolve())

    else:
        from .sqlite import SQLiteStorage
        return SQLiteStorage(Path(uri).resolve())


from .jsonfile import JsonFileStorage
from .sqlite import SQLiteStorage

__all__ = ["StorageBackend", "create_storage", "JsonFileStorage", "SQLiteStorage"]
