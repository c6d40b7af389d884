# cipherledger/storage/sqlite.py
import os
import sqlite3
import json
from pathlib import Path
from typing import List, Optional

from cipherledger.core.canon import canonical_text
from cipherledger.core.types import MessageRecord
from . import StorageBackend


class SQLiteStorage(StorageBackend):
    """SQLite persistence sink for message records."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("CIPHERLEDGER_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "records.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS records (
                id                  INTEGER PRIMARY KEY AUTOINCREMENT,
                block_index         INTEGER,
                block_hash          TEXT,
                previous_block_hash TEXT,
                sender              TEXT    NOT NULL,
                recipient           TEXT    NOT NULL,
                timestamp           TEXT    NOT NULL,
                record_json         TEXT    NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_timestamp ON records(timestamp)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_sender    ON records(sender)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def append(self, record: MessageRecord) -> None:
        record_str = canonical_text(record.to_dict())
        self.conn.execute("""
            INSERT INTO records
            (block_index, block_hash, previous_block_hash, sender, recipient, timestamp, record_json)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            record.block_index, record.block_hash, record.previous_block_hash,
            record.sender, record.recipient, record.timestamp, record_str
        ))

    def load_records(self) -> List[MessageRecord]:
        cursor = self.conn.execute("SELECT record_json FROM records ORDER BY id ASC")
        return [MessageRecord.from_dict(json.loads(row[0])) for row in cursor]

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def get_record_count(self) -> int:
        cursor = self.conn.execute("SELECT COUNT(*) FROM records")
        return cursor.fetchone()[0]

    def get_latest_timestamp(self) -> Optional[str]:
        cursor = self.conn.execute("SELECT MAX(timestamp) FROM records")
        row = cursor.fetchone()
        return row[0] if row and row[0] else None

    def list_participants(self) -> list[str]:
        """Every sender or recipient seen, alphabetically."""
        cursor = self.conn.execute("""
            SELECT sender FROM records
            UNION
            SELECT recipient FROM records
            ORDER BY 1
        """)
        return [row[0] for row in cursor.fetchall()]

    def query_records(self, limit: int = 50) -> List[MessageRecord]:
        cursor = self.conn.execute("""
            SELECT record_json FROM records
            ORDER BY id DESC
            LIMIT ?
        """, (limit,))
        loaded = [MessageRecord.from_dict(json.loads(row[0])) for row in cursor]
        loaded.reverse()  # latest last
        return loaded
