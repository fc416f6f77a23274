from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Dict, Iterable, Iterator, List, Optional

from .errors import NotFoundError, StorageError
from .models import AgentRecord, CatalogItem, CustomField, EmbeddedRecord, MediaFile, MetadataLayers
from .natural_sort import natural_sorted

logger = logging.getLogger(__name__)

AGENT_COLUMNS = (
    "title",
    "subtitle",
    "author",
    "narrator",
    "description",
    "cover_url",
    "series_name",
    "series_sequence",
    "release_date",
    "isbn",
    "asin",
    "language",
    "publisher",
    "duration_sec",
    "rating",
    "rating_count",
    "genres",
)

EMBEDDED_COLUMNS = (
    "title",
    "subtitle",
    "author",
    "narrator",
    "album",
    "genre",
    "year",
    "track_number",
    "comment",
    "series_name",
    "series_sequence",
    "cover",
    "cover_mime_type",
)


class CatalogStore:
    """SQLite-backed tier stores for catalog items.

    Holds the agent records (shared, keyed by source and external id), the
    embedded tag records and the custom field rows of every item. Only locked
    custom fields are representable: unlocking deletes the row.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path) if str(path) != ":memory:" else None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()
        self._conn = sqlite3.connect(
            str(self.path) if self.path is not None else ":memory:",
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS agent_metadata (
                id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                external_id TEXT NOT NULL,
                title TEXT,
                subtitle TEXT,
                author TEXT,
                narrator TEXT,
                description TEXT,
                cover_url TEXT,
                series_name TEXT,
                series_sequence TEXT,
                release_date TEXT,
                isbn TEXT,
                asin TEXT,
                language TEXT,
                publisher TEXT,
                duration_sec REAL,
                rating REAL,
                rating_count INTEGER,
                genres TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(source, external_id)
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS catalog_items (
                id TEXT PRIMARY KEY,
                asset_path TEXT NOT NULL,
                agent_id TEXT REFERENCES agent_metadata(id) ON DELETE SET NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS media_files (
                id TEXT PRIMARY KEY,
                item_id TEXT NOT NULL REFERENCES catalog_items(id) ON DELETE CASCADE,
                filename TEXT NOT NULL,
                duration_sec REAL NOT NULL DEFAULT 0,
                mime_type TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS embedded_metadata (
                item_id TEXT PRIMARY KEY REFERENCES catalog_items(id) ON DELETE CASCADE,
                title TEXT,
                subtitle TEXT,
                author TEXT,
                narrator TEXT,
                album TEXT,
                genre TEXT,
                year TEXT,
                track_number TEXT,
                comment TEXT,
                series_name TEXT,
                series_sequence TEXT,
                cover BLOB,
                cover_mime_type TEXT,
                extracted_at TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS custom_fields (
                item_id TEXT NOT NULL REFERENCES catalog_items(id) ON DELETE CASCADE,
                field TEXT NOT NULL,
                value TEXT NOT NULL,
                locked INTEGER NOT NULL DEFAULT 1 CHECK (locked = 1),
                updated_at TEXT NOT NULL,
                updated_by TEXT,
                PRIMARY KEY(item_id, field)
            )
            """
        )
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_items_agent ON catalog_items(agent_id)")
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_media_item ON media_files(item_id)")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of writes atomically.

        Nested use joins the outer transaction. A ``sqlite3.Error`` rolls the
        whole transaction back and surfaces as ``StorageError``; any other
        exception rolls back and propagates unchanged.
        """
        with self._lock:
            if self._conn.in_transaction:
                yield self._conn
                return
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                yield self._conn
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                logger.debug("Transaction failed, rolled back: %s", exc)
                raise StorageError(f"transaction failed: {exc}", exc) from exc
            except BaseException:
                self._rollback()
                raise

    def _rollback(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    def _execute(self, sql: str, params: Iterable[object] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, tuple(params))
        except sqlite3.Error as exc:
            if self._conn.in_transaction:
                raise
            raise StorageError(f"storage error: {exc}", exc) from exc

    # Catalog items

    def create_item(
        self,
        item_id: str,
        asset_path: Path | str,
        media_files: Iterable[MediaFile] = (),
    ) -> CatalogItem:
        with self.transaction():
            self._execute(
                """
                INSERT INTO catalog_items(id, asset_path, agent_id, created_at, updated_at)
                VALUES(?, ?, NULL, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
                """,
                (item_id, str(asset_path)),
            )
            for media in media_files:
                self._execute(
                    """
                    INSERT INTO media_files(id, item_id, filename, duration_sec, mime_type)
                    VALUES(?, ?, ?, ?, ?)
                    """,
                    (
                        media.id or str(uuid.uuid4()),
                        item_id,
                        media.filename,
                        float(media.duration_sec),
                        media.mime_type,
                    ),
                )
        return self.require_item(item_id)

    def get_item(self, item_id: str) -> Optional[CatalogItem]:
        with self._lock:
            row = self._execute(
                "SELECT id, asset_path, agent_id, created_at, updated_at FROM catalog_items WHERE id = ?",
                (item_id,),
            ).fetchone()
            if not row:
                return None
            item = CatalogItem(**dict(row))
            item.media_files = self.list_media_files(item_id)
        return item

    def require_item(self, item_id: str) -> CatalogItem:
        item = self.get_item(item_id)
        if item is None:
            raise NotFoundError(f"catalog item not found: {item_id}")
        return item

    def list_items(self) -> List[CatalogItem]:
        with self._lock:
            rows = self._execute(
                "SELECT id, asset_path, agent_id, created_at, updated_at FROM catalog_items ORDER BY id"
            ).fetchall()
        return [CatalogItem(**dict(row)) for row in rows]

    def delete_item(self, item_id: str) -> bool:
        with self.transaction():
            cursor = self._execute("DELETE FROM catalog_items WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    def touch_item(self, item_id: str) -> None:
        with self._lock:
            self._execute(
                "UPDATE catalog_items SET updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (item_id,),
            )

    def set_item_agent(self, item_id: str, agent_id: Optional[str]) -> None:
        with self._lock:
            cursor = self._execute(
                "UPDATE catalog_items SET agent_id = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (agent_id, item_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"catalog item not found: {item_id}")

    def list_media_files(self, item_id: str) -> List[MediaFile]:
        with self._lock:
            rows = self._execute(
                "SELECT id, item_id, filename, duration_sec, mime_type FROM media_files WHERE item_id = ?",
                (item_id,),
            ).fetchall()
        files = [MediaFile(**dict(row)) for row in rows]
        return natural_sorted(files, key=lambda media: media.filename)

    # Agent tier

    def upsert_agent(self, record: AgentRecord) -> AgentRecord:
        """Insert or update the agent record identified by (source, external_id)."""
        columns = ", ".join(AGENT_COLUMNS)
        placeholders = ", ".join("?" for _ in AGENT_COLUMNS)
        updates = ", ".join(f"{name}=excluded.{name}" for name in AGENT_COLUMNS)
        with self._lock:
            self._execute(
                f"""
                INSERT INTO agent_metadata(id, source, external_id, {columns}, created_at, updated_at)
                VALUES(?, ?, ?, {placeholders}, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
                ON CONFLICT(source, external_id)
                DO UPDATE SET {updates}, updated_at=excluded.updated_at
                """,
                (
                    record.id or str(uuid.uuid4()),
                    record.source,
                    record.external_id,
                    *(getattr(record, name) for name in AGENT_COLUMNS),
                ),
            )
            stored = self.get_agent_by_key(record.source, record.external_id)
        if stored is None:
            raise StorageError(f"agent record vanished after upsert: {record.source}:{record.external_id}")
        return stored

    def get_agent(self, agent_id: str) -> Optional[AgentRecord]:
        with self._lock:
            row = self._execute("SELECT * FROM agent_metadata WHERE id = ?", (agent_id,)).fetchone()
        return AgentRecord(**dict(row)) if row else None

    def get_agent_by_key(self, source: str, external_id: str) -> Optional[AgentRecord]:
        with self._lock:
            row = self._execute(
                "SELECT * FROM agent_metadata WHERE source = ? AND external_id = ?",
                (source, external_id),
            ).fetchone()
        return AgentRecord(**dict(row)) if row else None

    def items_for_agent(self, agent_id: str) -> List[str]:
        with self._lock:
            rows = self._execute(
                "SELECT id FROM catalog_items WHERE agent_id = ? ORDER BY id",
                (agent_id,),
            ).fetchall()
        return [row[0] for row in rows]

    # Embedded tier

    def upsert_embedded(self, item_id: str, record: EmbeddedRecord) -> None:
        columns = ", ".join(EMBEDDED_COLUMNS)
        placeholders = ", ".join("?" for _ in EMBEDDED_COLUMNS)
        updates = ", ".join(f"{name}=excluded.{name}" for name in EMBEDDED_COLUMNS)
        with self._lock:
            self._execute(
                f"""
                INSERT INTO embedded_metadata(item_id, {columns}, extracted_at)
                VALUES(?, {placeholders}, COALESCE(?, CURRENT_TIMESTAMP))
                ON CONFLICT(item_id)
                DO UPDATE SET {updates}, extracted_at=excluded.extracted_at
                """,
                (
                    item_id,
                    *(getattr(record, name) for name in EMBEDDED_COLUMNS),
                    record.extracted_at,
                ),
            )

    def get_embedded(self, item_id: str) -> Optional[EmbeddedRecord]:
        with self._lock:
            row = self._execute("SELECT * FROM embedded_metadata WHERE item_id = ?", (item_id,)).fetchone()
        return EmbeddedRecord(**dict(row)) if row else None

    def delete_embedded(self, item_id: str) -> bool:
        with self._lock:
            cursor = self._execute("DELETE FROM embedded_metadata WHERE item_id = ?", (item_id,))
        return cursor.rowcount > 0

    # Custom tier

    def get_custom_fields(self, item_id: str) -> Dict[str, CustomField]:
        with self._lock:
            rows = self._execute(
                """
                SELECT field, value, locked, updated_at, updated_by
                FROM custom_fields WHERE item_id = ? ORDER BY field
                """,
                (item_id,),
            ).fetchall()
        return {
            row["field"]: CustomField(
                field=row["field"],
                value=row["value"],
                locked=bool(row["locked"]),
                updated_at=row["updated_at"],
                updated_by=row["updated_by"],
            )
            for row in rows
        }

    def put_locked_field(self, item_id: str, field: str, value: str, updated_by: Optional[str] = None) -> None:
        with self._lock:
            self._execute(
                """
                INSERT INTO custom_fields(item_id, field, value, locked, updated_at, updated_by)
                VALUES(?, ?, ?, 1, CURRENT_TIMESTAMP, ?)
                ON CONFLICT(item_id, field)
                DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at, updated_by=excluded.updated_by
                """,
                (item_id, field, value, updated_by),
            )

    def delete_custom_field(self, item_id: str, field: str) -> bool:
        with self._lock:
            cursor = self._execute(
                "DELETE FROM custom_fields WHERE item_id = ? AND field = ?",
                (item_id, field),
            )
        return cursor.rowcount > 0

    def delete_custom_fields(self, item_id: str) -> int:
        with self._lock:
            cursor = self._execute("DELETE FROM custom_fields WHERE item_id = ?", (item_id,))
        return cursor.rowcount

    def load_layers(self, item_id: str) -> MetadataLayers:
        with self._lock:
            item = self.require_item(item_id)
            agent = self.get_agent(item.agent_id) if item.agent_id else None
            return MetadataLayers(
                agent=agent,
                embedded=self.get_embedded(item_id),
                custom=self.get_custom_fields(item_id),
            )
