import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from dsg.errors import NotFoundError, StorageError
from .models import HistoryEntry

logger = logging.getLogger("dsg.history")

DB_FILENAME = "history.db"

_COLUMNS = "id, prompt, response, schema_name, schema_urn, dataset_name, created_at"


class HistoryStore:
    """Log of past generations kept in a single sqlite table.

    One connection per store; every write is committed on its own.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / DB_FILENAME
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"failed to create data directory {self.data_dir}: {e}") from e

        try:
            self._conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StorageError(f"failed to open database {self.db_path}: {e}") from e

        try:
            self._init_db()
        except StorageError:
            self._conn.close()
            raise
        logger.debug("History database ready at %s", self.db_path)

    def _init_db(self):
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS responses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                prompt TEXT NOT NULL,
                response TEXT NOT NULL,
                schema_name TEXT,
                schema_urn TEXT,
                dataset_name TEXT,
                created_at TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
            )
            """,
            action="create table",
            commit=True,
        )

    def _execute(
        self, sql: str, params: tuple = (), action: str = "execute statement", commit: bool = False
    ):
        try:
            cur = self._conn.execute(sql, params)
            if commit:
                self._conn.commit()
            return cur
        except sqlite3.Error as e:
            raise StorageError(f"failed to {action}: {e}") from e

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def save(
        self,
        prompt: str,
        response: str,
        schema_name: Optional[str] = None,
        schema_urn: Optional[str] = None,
        dataset_name: Optional[str] = None,
    ) -> int:
        """Insert a generation and return its id."""
        cur = self._execute(
            """
            INSERT INTO responses (prompt, response, schema_name, schema_urn, dataset_name)
            VALUES (?, ?, ?, ?, ?)
            """,
            (prompt, response, schema_name, schema_urn, dataset_name),
            action="insert response",
            commit=True,
        )
        entry_id = cur.lastrowid
        logger.debug("Saved history entry %d", entry_id)
        return entry_id

    def get(self, entry_id: int) -> HistoryEntry:
        cur = self._execute(
            f"SELECT {_COLUMNS} FROM responses WHERE id = ?",
            (entry_id,),
            action=f"read history entry {entry_id}",
        )
        row = cur.fetchone()
        if not row:
            raise NotFoundError(f"no history entry found with ID {entry_id}")
        return self._row_to_entry(row)

    def list(self, limit: int = 10, offset: int = 0) -> List[HistoryEntry]:
        """Entries newest first; ties on created_at fall back to the id."""
        if limit < 0 or offset < 0:
            raise ValueError(f"limit and offset must not be negative (got {limit}, {offset})")
        cur = self._execute(
            f"SELECT {_COLUMNS} FROM responses "
            "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
            action="list history",
        )
        return [self._row_to_entry(row) for row in cur.fetchall()]

    def count(self) -> int:
        cur = self._execute("SELECT COUNT(*) FROM responses", action="count history")
        return cur.fetchone()[0]

    def delete(self, entry_id: int) -> None:
        # Missing ids are not an error here; callers look up first when it matters.
        self._execute(
            "DELETE FROM responses WHERE id = ?",
            (entry_id,),
            action=f"delete history entry {entry_id}",
            commit=True,
        )

    def clear(self) -> None:
        self._execute("DELETE FROM responses", action="clear history", commit=True)

    def _row_to_entry(self, row) -> HistoryEntry:
        # id, prompt, response, schema_name, schema_urn, dataset_name, created_at
        return HistoryEntry(
            id=row[0],
            prompt=row[1],
            response=row[2],
            schema_name=row[3],
            schema_urn=row[4],
            dataset_name=row[5],
            created_at=datetime.fromisoformat(row[6]),
        )
