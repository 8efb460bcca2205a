"""A small JSON document store on top of sqlite3.

Each collection is a table holding the full document as JSON plus the
columns needed to filter and order it (owner, creation time, deletion time).
"""

import json
import secrets
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

COLLECTIONS = ("users", "questions", "collections", "practice_sessions")
UNIQUE_FIELDS = {"users": "email"}


def new_id() -> str:
    """24 hex characters, the same shape as a document-store object id."""
    return secrets.token_hex(12)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _table(collection: str) -> str:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection '{collection}'.")
    return collection


def _row_to_doc(row: sqlite3.Row) -> Dict[str, Any]:
    doc = json.loads(row["doc_json"]) if row["doc_json"] else {}
    doc["id"] = row["id"]
    doc["user_id"] = row["user_id"]
    doc["created_at"] = row["created_at"]
    doc["deleted_at"] = row["deleted_at"]
    return doc


class DocumentStore:
    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = str(db_path)

    def get_db_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self.get_db_connection()
        try:
            for collection in COLLECTIONS:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {collection} (
                        id TEXT PRIMARY KEY,
                        user_id TEXT,
                        doc_json TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        deleted_at TEXT
                    )
                    """
                )
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{collection}_user ON {collection} (user_id, created_at)"
                )
            for collection, field in UNIQUE_FIELDS.items():
                conn.execute(
                    f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{collection}_{field} "
                    f"ON {collection} (json_extract(doc_json, '$.{field}'))"
                )
            conn.commit()
        finally:
            conn.close()

    def insert(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        table = _table(collection)
        stored = dict(doc)
        stored["id"] = stored.get("id") or new_id()
        stored["created_at"] = stored.get("created_at") or utc_now()
        stored.setdefault("deleted_at", None)
        conn = self.get_db_connection()
        try:
            conn.execute(
                f"""
                INSERT INTO {table} (id, user_id, doc_json, created_at, deleted_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    stored["id"],
                    stored.get("user_id"),
                    json.dumps(stored, ensure_ascii=False),
                    stored["created_at"],
                    stored["deleted_at"],
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return stored

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        table = _table(collection)
        conn = self.get_db_connection()
        try:
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (doc_id,)).fetchone()
            return _row_to_doc(row) if row is not None else None
        finally:
            conn.close()

    def find_many(self, collection: str, ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Fetch every document whose id is in ``ids`` in one query."""
        table = _table(collection)
        id_list = list(dict.fromkeys(ids))
        if not id_list:
            return []
        placeholders = ", ".join("?" for _ in id_list)
        conn = self.get_db_connection()
        try:
            rows = conn.execute(
                f"SELECT * FROM {table} WHERE id IN ({placeholders})",
                id_list,
            ).fetchall()
            return [_row_to_doc(row) for row in rows]
        finally:
            conn.close()

    def find_one(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        table = _table(collection)
        conn = self.get_db_connection()
        try:
            row = conn.execute(
                f"SELECT * FROM {table} WHERE json_extract(doc_json, ?) = ? LIMIT 1",
                (f"$.{field}", value),
            ).fetchone()
            return _row_to_doc(row) if row is not None else None
        finally:
            conn.close()

    def find(
        self,
        collection: str,
        user_id: Optional[str] = None,
        include_deleted: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Documents newest first, optionally scoped to an owner."""
        table = _table(collection)
        clauses: List[str] = []
        params: List[Any] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(str(user_id))
        if not include_deleted:
            clauses.append("deleted_at IS NULL")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT * FROM {table} {where} ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        conn = self.get_db_connection()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [_row_to_doc(row) for row in rows]
        finally:
            conn.close()

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge ``fields`` into a document; returns the new document or None."""
        table = _table(collection)
        conn = self.get_db_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (doc_id,)).fetchone()
            if row is None:
                conn.rollback()
                return None
            doc = _row_to_doc(row)
            doc.update(fields)
            doc["id"] = row["id"]
            conn.execute(
                f"UPDATE {table} SET doc_json = ?, deleted_at = ? WHERE id = ?",
                (json.dumps(doc, ensure_ascii=False), doc.get("deleted_at"), doc_id),
            )
            conn.commit()
            return doc
        finally:
            conn.close()

    def add_to_set(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        """Atomically append ``value`` to a list field unless already present.

        Returns True when the value was appended, False when it was already
        there (or the document does not exist).
        """
        table = _table(collection)
        conn = self.get_db_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (doc_id,)).fetchone()
            if row is None:
                conn.rollback()
                return False
            doc = _row_to_doc(row)
            values = list(doc.get(field) or [])
            if value in values:
                conn.rollback()
                return False
            values.append(value)
            doc[field] = values
            doc["updated_at"] = utc_now()
            conn.execute(
                f"UPDATE {table} SET doc_json = ? WHERE id = ?",
                (json.dumps(doc, ensure_ascii=False), doc_id),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def pull(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        """Atomically remove every occurrence of ``value`` from a list field."""
        table = _table(collection)
        conn = self.get_db_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (doc_id,)).fetchone()
            if row is None:
                conn.rollback()
                return False
            doc = _row_to_doc(row)
            values = list(doc.get(field) or [])
            remaining = [v for v in values if v != value]
            if len(remaining) == len(values):
                conn.rollback()
                return False
            doc[field] = remaining
            doc["updated_at"] = utc_now()
            conn.execute(
                f"UPDATE {table} SET doc_json = ? WHERE id = ?",
                (json.dumps(doc, ensure_ascii=False), doc_id),
            )
            conn.commit()
            return True
        finally:
            conn.close()
