from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from .errors import PersistenceError
from .log import get_logger
from .model import BookmarkRecord

log = get_logger(__name__)

_COLUMNS = "id, user_id, title, url, lan_url, is_folder, parent_url, sort, created_at, updated_at"

# Record attribute -> column. The folder flag and owner are fixed at creation.
_UPDATABLE = {
    "title": "title",
    "url": "url",
    "lan_url": "lan_url",
    "parent_url": "parent_url",
    "sort": "sort",
}


def init_store(db_path: Path | str, *, recreate: bool = False) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    if recreate and db_path.exists():
        db_path.unlink()
    with BookmarkStore(db_path):
        pass


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS bookmark (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            title TEXT NOT NULL DEFAULT '',
            url TEXT NOT NULL DEFAULT '',
            lan_url TEXT NOT NULL DEFAULT '',
            is_folder INTEGER NOT NULL DEFAULT 0,
            parent_url TEXT NOT NULL DEFAULT '0',
            sort INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_bookmark_user_parent_url ON bookmark(user_id, parent_url, url)")
    conn.commit()


class BookmarkStore:
    """sqlite-backed gateway for per-user bookmark records.

    Each call is atomic on its own; nothing spans calls. sqlite failures are
    logged and re-raised as PersistenceError with the cause chained.
    """

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = 5000):
        self.db_path = Path(db_path)
        self.busy_timeout_ms = max(0, int(busy_timeout_ms))
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> "BookmarkStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        timeout_s = max(0.1, self.busy_timeout_ms / 1000.0)
        try:
            self.conn = sqlite3.connect(str(self.db_path), timeout=timeout_s)
            self.conn.row_factory = sqlite3.Row
            _ensure_schema(self.conn)
        except sqlite3.Error as e:
            self.close()
            log.error("Cannot open bookmark store %s: %s", self.db_path, e)
            raise PersistenceError("failed to open bookmark store") from e

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def find_all_for_user(self, user_id: int) -> List[BookmarkRecord]:
        with self._persisting("read") as c:
            rows = c.execute(
                f"SELECT {_COLUMNS} FROM bookmark WHERE user_id = ? ORDER BY sort, id",
                (user_id,),
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def find_by_id(self, record_id: int) -> Optional[BookmarkRecord]:
        with self._persisting("read") as c:
            row = c.execute(f"SELECT {_COLUMNS} FROM bookmark WHERE id = ?", (record_id,)).fetchone()
        return _row_to_record(row) if row else None

    def find_by_id_for_user(self, record_id: int, user_id: int) -> Optional[BookmarkRecord]:
        with self._persisting("read") as c:
            row = c.execute(
                f"SELECT {_COLUMNS} FROM bookmark WHERE id = ? AND user_id = ?",
                (record_id, user_id),
            ).fetchone()
        return _row_to_record(row) if row else None

    def insert(self, record: BookmarkRecord) -> int:
        return self.bulk_insert([record])[0].id

    def bulk_insert(self, records: Iterable[BookmarkRecord]) -> List[BookmarkRecord]:
        """Insert all records in one transaction and assign their ids."""
        records = list(records)
        if not records:
            return records
        now = _now_iso()
        new_ids: List[int] = []
        with self._persisting("add") as c:
            for r in records:
                c.execute(
                    """
                    INSERT INTO bookmark (user_id, title, url, lan_url, is_folder, parent_url, sort, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (r.user_id, r.title, r.url, r.lan_url or "", 1 if r.is_folder else 0, r.parent_url, r.sort, now, now),
                )
                new_ids.append(int(c.lastrowid))
            c.connection.commit()

        for r, new_id in zip(records, new_ids):
            r.id = new_id
            r.created_at = now
            r.updated_at = now
        log.debug("Inserted %d bookmark records.", len(records))
        return records

    def update_fields(self, record_id: int, fields: Dict[str, object]) -> None:
        unknown = set(fields) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"fields cannot be updated: {', '.join(sorted(unknown))}")
        if not fields:
            return
        cols = [f"{_UPDATABLE[k]} = ?" for k in fields]
        vals: List[object] = list(fields.values())
        cols.append("updated_at = ?")
        vals.append(_now_iso())
        vals.append(record_id)
        with self._persisting("update") as c:
            c.execute(f"UPDATE bookmark SET {', '.join(cols)} WHERE id = ?", vals)
            c.connection.commit()

    def delete_by_ids_for_user(self, user_id: int, ids: Iterable[int]) -> int:
        ids = [int(x) for x in ids]
        if not ids:
            return 0
        placeholders = ",".join(["?"] * len(ids))
        with self._persisting("delete") as c:
            cur = c.execute(
                f"DELETE FROM bookmark WHERE user_id = ? AND id IN ({placeholders})",
                [user_id, *ids],
            )
            c.connection.commit()
        return int(cur.rowcount)

    @contextmanager
    def _persisting(self, op: str) -> Iterator[sqlite3.Cursor]:
        c = self._cursor()
        try:
            yield c
        except sqlite3.Error as e:
            if self.conn is not None:
                self.conn.rollback()
            log.error("Bookmark store failed to %s: %s", op, e)
            raise PersistenceError(f"failed to {op} bookmarks") from e

    def _cursor(self) -> sqlite3.Cursor:
        if self.conn is None:
            raise RuntimeError("bookmark store is not open")
        return self.conn.cursor()


def _row_to_record(row: sqlite3.Row) -> BookmarkRecord:
    return BookmarkRecord(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        title=row["title"] or "",
        url=row["url"] or "",
        lan_url=row["lan_url"] or "",
        is_folder=bool(row["is_folder"]),
        parent_url=row["parent_url"] if row["parent_url"] is not None else "0",
        sort=int(row["sort"] or 0),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
