# cipherledger/storage/jsonfile.py
import json
import logging
from pathlib import Path
from typing import List

from cipherledger.core.errors import StorageError
from cipherledger.core.types import MessageRecord
from . import StorageBackend

logger = logging.getLogger(__name__)


class JsonFileStorage(StorageBackend):
    """
    All records in one JSON document (an array), e.g. messages.json.

    Every append reads the whole document, appends, and rewrites it. There is
    no locking: two processes writing the same file can lose records.
    """

    def __init__(self, path: str | Path = "messages.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> List[dict]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise StorageError(f"{self.path} must contain a JSON array of records")
        return data

    def _write(self, data: List[dict]) -> None:
        try:
            self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def append(self, record: MessageRecord) -> None:
        existed = self.path.exists()
        data = self._read()
        data.append(record.to_dict())
        self._write(data)
        if existed:
            logger.info("Record saved to %s (%d total)", self.path, len(data))
        else:
            logger.info("Record file %s created", self.path)

    def load_records(self) -> List[MessageRecord]:
        try:
            return [MessageRecord.from_dict(d) for d in self._read()]
        except (KeyError, TypeError) as e:
            raise StorageError(f"Malformed record in {self.path}: {e}") from e

    def close(self) -> None:
        # Nothing is held open between calls.
        pass
