from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from docqa.domain.errors import NotFound
from docqa.domain.models import Document, Page
from docqa.domain.schema import validate_page_limit


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        content=row["content"],
        metadata=json.loads(row["metadata_json"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


@dataclass(frozen=True, slots=True)
class SqliteDocumentRepository:
    """
    Document records persisted in SQLite.

    A connection is opened per call, so the repository is safe to share
    between request threads.
    """
    db_path: Path

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
              id TEXT PRIMARY KEY,
              content TEXT NOT NULL,
              metadata_json TEXT NOT NULL,
              created_at TEXT NOT NULL,
              updated_at TEXT NOT NULL
            )
            """
        )
        return conn

    def save(self, doc: Document) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO documents(id, content, metadata_json, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        doc.id,
                        doc.content,
                        json.dumps(dict(doc.metadata), sort_keys=True),
                        doc.created_at.isoformat(),
                        doc.updated_at.isoformat(),
                    ),
                )
        finally:
            conn.close()

    def get(self, id: str) -> Document:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFound("document", id)
        return _row_to_document(row)

    def delete(self, id: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM documents WHERE id = ?", (id,))
        finally:
            conn.close()

    def list(self, *, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page[Document]:
        limit = validate_page_limit(limit)
        conn = self._connect()
        try:
            # one extra row tells us whether another page exists
            rows = conn.execute(
                "SELECT * FROM documents WHERE id > ? ORDER BY id LIMIT ?",
                (cursor or "", limit + 1),
            ).fetchall()
        finally:
            conn.close()

        docs = [_row_to_document(r) for r in rows[:limit]]
        next_cursor = docs[-1].id if len(rows) > limit else None
        return Page(items=tuple(docs), next_cursor=next_cursor)
