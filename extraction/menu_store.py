# extraction/menu_store.py
"""
SQLite persistence for validated MenuDocuments.

save_menu_document(doc) -> id; get_menu_document(id) -> dict | None;
delete_menu_document(id) -> the deleted dict | None.
The full serialized document is kept as JSON next to a few indexed columns.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .menu_types import STATUS_PENDING, MenuDocument

DB_PATH: Optional[Path] = None  # set by configure(); falls back to Settings.db_path


def configure(db_path: Union[str, Path]) -> None:
    global DB_PATH
    DB_PATH = Path(db_path)


def _db_path() -> Path:
    if DB_PATH is not None:
        return DB_PATH
    from .config import Settings
    return Settings.from_env().db_path


def db_connect() -> sqlite3.Connection:
    path = _db_path()
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


# ------------------------------------------------------------
# Schema (idempotent)
# ------------------------------------------------------------
def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS menu_documents (
          id                INTEGER PRIMARY KEY AUTOINCREMENT,
          source_type       TEXT NOT NULL,
          source_value      TEXT,
          extraction_method TEXT,
          confidence        REAL NOT NULL DEFAULT 0,
          processing_status TEXT NOT NULL,
          image_id          TEXT,
          total_items       INTEGER NOT NULL DEFAULT 0,
          document          TEXT NOT NULL,   -- JSON (MenuDocument.to_dict())
          created_at        TEXT NOT NULL
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_menu_documents_status ON menu_documents(processing_status)"
    )


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def save_menu_document(doc: Union[MenuDocument, Dict[str, Any]]) -> int:
    payload = doc.to_dict() if isinstance(doc, MenuDocument) else dict(doc)
    source = payload.get("source") or {}
    with db_connect() as conn:
        _ensure_schema(conn)
        cur = conn.execute(
            """
            INSERT INTO menu_documents
              (source_type, source_value, extraction_method, confidence,
               processing_status, image_id, total_items, document, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                source.get("type") or "unknown",
                source.get("value"),
                payload.get("extractionMethod"),
                float(payload.get("confidence") or 0.0),
                payload.get("processingStatus") or STATUS_PENDING,
                payload.get("imageId"),
                int(payload.get("totalItems") or 0),
                json.dumps(payload, ensure_ascii=False),
                _now(),
            ),
        )
        return int(cur.lastrowid)


def get_menu_document(menu_id: int) -> Optional[Dict[str, Any]]:
    with db_connect() as conn:
        _ensure_schema(conn)
        row = conn.execute(
            "SELECT id, document, created_at FROM menu_documents WHERE id = ?",
            (int(menu_id),),
        ).fetchone()
    if row is None:
        return None
    doc = json.loads(row["document"])
    doc["id"] = row["id"]
    doc["createdAt"] = row["created_at"]
    return doc


def delete_menu_document(menu_id: int) -> Optional[Dict[str, Any]]:
    """Remove a stored document; returns it so the caller can drop its image."""
    doc = get_menu_document(menu_id)
    if doc is None:
        return None
    with db_connect() as conn:
        conn.execute("DELETE FROM menu_documents WHERE id = ?", (int(menu_id),))
    return doc
