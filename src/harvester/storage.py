# src/harvester/storage.py
"""Page record persistence supporting local SQLite and in-memory backends."""

import json
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import asdict
from typing import Optional, List, Dict, Any
import logging

from harvester.config import settings
from harvester.exceptions import PersistenceError
from harvester.models import PageRecord

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS template_pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    template_id TEXT NOT NULL,
    url TEXT NOT NULL,
    path TEXT NOT NULL,
    depth INTEGER NOT NULL,
    page_order INTEGER NOT NULL,
    is_home_page INTEGER NOT NULL DEFAULT 0,

    -- Content
    html_content TEXT,
    css_content TEXT,
    js_content TEXT,

    -- JSON columns
    images TEXT,
    text_content TEXT,
    design_tokens TEXT,
    metadata TEXT,

    saved_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

    UNIQUE(template_id, path)
);
"""

# Columns stored as JSON text
JSON_COLUMNS = ("images", "text_content", "design_tokens", "metadata")


class AbstractPageStore(ABC):
    """Abstract base class defining the page store interface."""

    @abstractmethod
    def save(self, template_id: str, record: PageRecord) -> None:
        """Persist a page record keyed by (template_id, record.path).

        Raises:
            PersistenceError: If the record could not be stored.
        """
        pass

    @abstractmethod
    def clear(self, template_id: str) -> None:
        """Remove every page stored for a template."""
        pass

    @abstractmethod
    def list_pages(self, template_id: str) -> List[Dict[str, Any]]:
        """Retrieve the pages of a template ordered by discovery order."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release backend resources."""
        pass


class SqlitePageStore(AbstractPageStore):
    """SQLite page store for local runs."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize the SQLite store.

        Args:
            db_path: Path to the database file (':memory:' allowed).
                Defaults to settings.DB_PATH.
        """
        self.db_path = db_path or settings.DB_PATH
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        try:
            self.conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to SQLite page store: {self.db_path}")

    def _connection(self, url: Optional[str] = None) -> sqlite3.Connection:
        if self.conn is None:
            raise PersistenceError(f"Page store {self.db_path} is closed", url=url)
        return self.conn

    def create_schema(self) -> None:
        with self.conn:
            self.conn.execute(CREATE_TABLE_SQL)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed SQLite page store")

    def save(self, template_id: str, record: PageRecord) -> None:
        row = {
            "template_id": template_id,
            "url": record.url,
            "path": record.path,
            "depth": record.depth,
            "page_order": record.order,
            "is_home_page": int(record.is_home_page),
            "html_content": record.html_content,
            "css_content": record.css_content,
            "js_content": record.js_content,
            "images": json.dumps([asdict(image) for image in record.images]),
            "text_content": json.dumps(asdict(record.text_content)),
            "design_tokens": json.dumps(asdict(record.design_tokens)),
            "metadata": json.dumps(asdict(record.metadata)),
        }
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        insert_sql = (
            f"INSERT OR REPLACE INTO template_pages ({columns}) VALUES ({placeholders})"
        )

        conn = self._connection(record.url)
        try:
            with conn:
                conn.execute(insert_sql, tuple(row.values()))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save page {record.path}: {e}", url=record.url) from e
        logger.debug(f"Saved page {record.path} for template {template_id}")

    def clear(self, template_id: str) -> None:
        conn = self._connection()
        try:
            with conn:
                conn.execute("DELETE FROM template_pages WHERE template_id = ?", (template_id,))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear template {template_id}: {e}") from e

    def list_pages(self, template_id: str) -> List[Dict[str, Any]]:
        query_sql = "SELECT * FROM template_pages WHERE template_id = ? ORDER BY page_order ASC"
        cursor = self._connection().cursor()
        cursor.execute(query_sql, (template_id,))

        pages = []
        for row in cursor.fetchall():
            page = dict(row)
            for column in JSON_COLUMNS:
                if page.get(column):
                    page[column] = json.loads(page[column])
            page["is_home_page"] = bool(page["is_home_page"])
            page["order"] = page.pop("page_order")
            pages.append(page)
        return pages


class MemoryPageStore(AbstractPageStore):
    """In-process page store (tests, dry runs)."""

    def __init__(self):
        self._pages: Dict[str, Dict[str, PageRecord]] = {}

    def save(self, template_id: str, record: PageRecord) -> None:
        self._pages.setdefault(template_id, {})[record.path] = record

    def clear(self, template_id: str) -> None:
        self._pages.pop(template_id, None)

    def list_pages(self, template_id: str) -> List[Dict[str, Any]]:
        records = sorted(self._pages.get(template_id, {}).values(), key=lambda r: r.order)
        return [record.to_dict() for record in records]

    def records(self, template_id: str) -> List[PageRecord]:
        return sorted(self._pages.get(template_id, {}).values(), key=lambda r: r.order)

    def close(self) -> None:
        pass


def get_page_store(backend: str = "sqlite", **kwargs) -> AbstractPageStore:
    """Factory function to create a page store.

    Args:
        backend: 'sqlite' or 'memory'
        **kwargs: Passed to the store constructor

    Raises:
        ValueError: If an unknown backend is specified.
    """
    if backend == "sqlite":
        return SqlitePageStore(**kwargs)
    elif backend == "memory":
        return MemoryPageStore()
    else:
        raise ValueError(
            f"Unknown page store backend: '{backend}'. "
            "Supported backends: 'sqlite', 'memory'"
        )
