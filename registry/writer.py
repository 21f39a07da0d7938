"""
Transactional header + line-item writer shared by POs and PARs.

One call to save() runs, inside a single BEGIN IMMEDIATE transaction:
  1. Uniqueness guard: no *other* header may carry the same document number
  2. Recipient find-or-create (PAR only), keyed on users.full_name
  3. Header insert (no id) or update of every mutable column (id given)
  4. Item replacement: existing children deleted, validated items inserted
  5. Commit

Any failure rolls the whole transaction back and is re-raised as a
PersistenceFailure; nothing is retried.  The document-number UNIQUE index
backs the guard, so a request that loses a race still surfaces as
DuplicateKey rather than a second header.
"""
import logging
import sqlite3
from typing import Optional

from models.document import DocumentModel, to_optional_id
from models.result import SaveResult
from .database import Database
from .documents import DocumentKind
from .errors import DocumentNotFound, DuplicateKey, PersistenceError

logger = logging.getLogger(__name__)


class DocumentWriter:
    """Persists validated document records atomically."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def save(
        self,
        kind: DocumentKind,
        record: DocumentModel,
        doc_id: Optional[int] = None,
    ) -> SaveResult:
        """
        Insert (doc_id is None) or update (doc_id given) one document.

        *record* must already have been through DocumentValidator: its
        dates are canonical and its total_amount is the computed one.
        """
        updating = doc_id is not None
        natural_key = getattr(record, kind.key_column)
        recipient_id: Optional[int] = None

        try:
            with self.db.transaction() as conn:
                self._guard_unique(conn, kind, natural_key, doc_id)

                values = {column: getattr(record, column) for column in kind.header_columns}
                if kind.recipient_column:
                    recipient_id = self._resolve_recipient(conn, record)
                    values[kind.recipient_column] = recipient_id

                if updating:
                    self._update_header(conn, kind, values, doc_id)
                    conn.execute(
                        f"DELETE FROM {kind.item_table} WHERE {kind.id_column} = ?",
                        (doc_id,),
                    )
                else:
                    doc_id = self._insert_header(conn, kind, values)

                for item in record.items:
                    self._insert_item(conn, kind, doc_id, item)

        except sqlite3.IntegrityError as exc:
            if f"{kind.header_table}.{kind.key_column}" in str(exc):
                logger.warning("%s %s lost a duplicate-key race", kind.code, natural_key)
                raise DuplicateKey(natural_key, kind.key_label) from exc
            logger.error("Error saving %s %s: %s", kind.code, natural_key, exc)
            raise PersistenceError(str(exc)) from exc
        except sqlite3.Error as exc:
            logger.error("Error saving %s %s: %s", kind.code, natural_key, exc)
            raise PersistenceError(str(exc)) from exc

        logger.info(
            "%s %s %s: id=%s items=%d total=%.2f",
            "Updated" if updating else "Saved", kind.code, natural_key,
            doc_id, len(record.items), record.total_amount,
        )
        return SaveResult(
            kind=kind.code,
            doc_id=doc_id,
            natural_key=natural_key,
            total_amount=record.total_amount,
            item_count=len(record.items),
            updated=updating,
            recipient_id=recipient_id,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _guard_unique(
        self,
        conn: sqlite3.Connection,
        kind: DocumentKind,
        natural_key: str,
        doc_id: Optional[int],
    ) -> None:
        row = conn.execute(
            f"SELECT {kind.id_column} FROM {kind.header_table} "
            f"WHERE {kind.key_column} = ? AND {kind.id_column} != ?",
            (natural_key, doc_id if doc_id is not None else 0),
        ).fetchone()
        if row is not None:
            logger.info("%s %s already used by id=%s", kind.code, natural_key, row[0])
            raise DuplicateKey(natural_key, kind.key_label)

    def _resolve_recipient(self, conn: sqlite3.Connection, record: DocumentModel) -> int:
        """
        Find-or-create the recipient row for a PAR.

        A numeric received_by that matches an existing user id is used as
        is; otherwise it is treated as a full name.
        """
        name = record.received_by
        user_id = to_optional_id(name) if name.isdecimal() else None
        if user_id is not None:
            row = conn.execute(
                "SELECT user_id FROM users WHERE user_id = ?", (user_id,)
            ).fetchone()
            if row is not None:
                return row["user_id"]

        row = conn.execute(
            "SELECT user_id FROM users WHERE full_name = ?", (name,)
        ).fetchone()
        if row is not None:
            return row["user_id"]

        try:
            cur = conn.execute(
                "INSERT INTO users (full_name, position, department) VALUES (?, ?, ?)",
                (name, record.position, record.department),
            )
        except sqlite3.IntegrityError:
            # Created by a concurrent writer between the lookup and the insert
            row = conn.execute(
                "SELECT user_id FROM users WHERE full_name = ?", (name,)
            ).fetchone()
            if row is None:
                raise
            return row["user_id"]

        logger.info("Created recipient %r (user_id=%s)", name, cur.lastrowid)
        return cur.lastrowid

    def _insert_header(
        self, conn: sqlite3.Connection, kind: DocumentKind, values: dict
    ) -> int:
        columns = ", ".join(values)
        placeholders = ", ".join(f":{c}" for c in values)
        cur = conn.execute(
            f"INSERT INTO {kind.header_table} ({columns}) VALUES ({placeholders})",
            values,
        )
        return cur.lastrowid

    def _update_header(
        self,
        conn: sqlite3.Connection,
        kind: DocumentKind,
        values: dict,
        doc_id: int,
    ) -> None:
        assignments = ",\n    ".join(f"{c} = :{c}" for c in values)
        cur = conn.execute(
            f"UPDATE {kind.header_table} SET\n    {assignments},\n"
            f"    updated_at = CURRENT_TIMESTAMP\n"
            f"WHERE {kind.id_column} = :_doc_id",
            {**values, "_doc_id": doc_id},
        )
        if cur.rowcount == 0:
            raise DocumentNotFound(kind.display, doc_id)

    def _insert_item(
        self,
        conn: sqlite3.Connection,
        kind: DocumentKind,
        doc_id: int,
        item,
    ) -> None:
        values = {column: getattr(item, attr) for column, attr in kind.item_columns.items()}
        values[kind.id_column] = doc_id
        columns = ", ".join(values)
        placeholders = ", ".join(f":{c}" for c in values)
        conn.execute(
            f"INSERT INTO {kind.item_table} ({columns}) VALUES ({placeholders})",
            values,
        )
