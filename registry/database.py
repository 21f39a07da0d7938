"""
SQLite persistence layer for the asset registry.

One database file holds purchase orders, property acknowledgement
receipts (PAR), their line items, PAR recipients (users) and the
inventory register.  The Database object is only a path plus a
connection factory: every unit of work opens its own connection through
_conn(), which always commits or rolls back and always closes.  No
connection is shared between requests.

Write scopes start with BEGIN IMMEDIATE so the SQLite write lock is taken
up front and check-then-act sequences (duplicate document numbers,
recipient find-or-create) are serialised between concurrent requests.

Schema changes live in registry.migrations and are applied by migrate().
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .documents import DocumentKind
from .migrations import apply_migrations, current_version

logger = logging.getLogger(__name__)

_COUNTED_TABLES = (
    "purchase_orders", "po_items",
    "property_acknowledgement_receipts", "par_items",
    "users", "inventory_items", "location_history",
)


class Database:
    """Thin wrapper around an SQLite database file for registry state."""

    def __init__(self, db_path: Path, timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path), timeout=self.timeout, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    @contextmanager
    def _conn(self, write: bool = False) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

    def transaction(self):
        """Write scope: all statements commit together or not at all."""
        return self._conn(write=True)

    def reader(self):
        """Read scope: one consistent snapshot, closed on exit."""
        return self._conn()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def migrate(self) -> list[int]:
        """Apply pending migrations; returns the versions applied now."""
        conn = self._connect()
        try:
            applied = apply_migrations(conn)
        finally:
            conn.close()
        logger.debug("Database schema ready: %s", self.db_path)
        return applied

    def schema_version(self) -> int:
        conn = self._connect()
        try:
            return current_version(conn)
        finally:
            conn.close()

    def table_counts(self) -> dict[str, int]:
        with self._conn() as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in _COUNTED_TABLES
            }

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def get_purchase_order(self, po_id: int) -> Optional[dict]:
        """Return the PO header (all columns) with its items, or None."""
        with self._conn() as conn:
            header = conn.execute(
                "SELECT * FROM purchase_orders WHERE po_id = ?", (po_id,)
            ).fetchone()
            if header is None:
                return None
            items = conn.execute(
                "SELECT * FROM po_items WHERE po_id = ? ORDER BY po_item_id",
                (po_id,),
            ).fetchall()
        return {**dict(header), "items": [dict(r) for r in items]}

    def list_purchase_orders(
        self,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[dict]:
        """
        Return PO headers newest-first with an item count.

        Args:
            search:  Case-insensitive substring match on po_no or supplier_name.
        """
        clauses: list[str] = []
        params: list = []
        if search:
            clauses.append("(po.po_no LIKE ? OR po.supplier_name LIKE ?)")
            like = f"%{search}%"
            params.extend([like, like])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([limit, offset])

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT po.*, COUNT(pi.po_item_id) AS item_count
                FROM purchase_orders po
                LEFT JOIN po_items pi ON pi.po_id = po.po_id
                {where}
                GROUP BY po.po_id
                ORDER BY po.po_date DESC, po.po_id DESC
                LIMIT ? OFFSET ?
                """,
                params,
            ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Property acknowledgement receipts
    # ------------------------------------------------------------------

    def list_pars(self) -> list[dict]:
        """PAR summaries for the register view, latest acquisition first."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT par.par_id AS id,
                       par.par_no,
                       COALESCE(NULLIF(par.date_acquired, ''), date('now')) AS date_acquired,
                       GROUP_CONCAT(NULLIF(pi.property_number, ''), ', ') AS property_number,
                       u.full_name AS issued_to,
                       par.total_amount,
                       'Active' AS status
                FROM property_acknowledgement_receipts par
                LEFT JOIN users u      ON par.received_by = u.user_id
                LEFT JOIN par_items pi ON par.par_id = pi.par_id
                GROUP BY par.par_id
                ORDER BY par.date_acquired DESC, par.par_id DESC
                """
            ).fetchall()
        return [dict(r) for r in rows]

    def get_par(self, par_id: int) -> Optional[dict]:
        """
        Return one PAR with recipient name and items, or None.

        Receipts written before totals were computed server-side may carry
        a zero total; it is recomputed from the items and stored.  Only
        that write-back takes the write lock.
        """
        with self._conn() as conn:
            header = conn.execute(
                """
                SELECT par.*, u.full_name AS received_by_name
                FROM property_acknowledgement_receipts par
                LEFT JOIN users u ON par.received_by = u.user_id
                WHERE par.par_id = ?
                """,
                (par_id,),
            ).fetchone()
            if header is None:
                return None
            items = [
                dict(r) for r in conn.execute(
                    """
                    SELECT par_item_id, quantity, unit, description, property_number,
                           COALESCE(NULLIF(date_acquired, ''), ?) AS date_acquired,
                           amount
                    FROM par_items WHERE par_id = ? ORDER BY par_item_id
                    """,
                    (header["date_acquired"], par_id),
                ).fetchall()
            ]

        record = dict(header)
        computed = sum(i["quantity"] * i["amount"] for i in items)
        if not record["total_amount"] and computed > 0:
            with self._conn(write=True) as conn:
                conn.execute(
                    "UPDATE property_acknowledgement_receipts SET total_amount = ? "
                    "WHERE par_id = ? AND total_amount = 0",
                    (computed, par_id),
                )
            record["total_amount"] = computed
            logger.info("PAR %s: stored zero total replaced with %.2f", par_id, computed)

        record["items"] = items
        return record

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def delete_document(self, kind: DocumentKind, doc_id: int) -> bool:
        """Delete a header; its items go with it (ON DELETE CASCADE)."""
        with self._conn(write=True) as conn:
            cur = conn.execute(
                f"DELETE FROM {kind.header_table} WHERE {kind.id_column} = ?",
                (doc_id,),
            )
            deleted = cur.rowcount > 0
        if deleted:
            logger.info("Deleted %s id=%s", kind.code, doc_id)
        return deleted

    def count_rows(self, kind: DocumentKind, doc_id: Optional[int] = None) -> tuple[int, int]:
        """(header rows, item rows), optionally restricted to one document."""
        with self._conn() as conn:
            if doc_id is None:
                headers = conn.execute(f"SELECT COUNT(*) FROM {kind.header_table}").fetchone()[0]
                items = conn.execute(f"SELECT COUNT(*) FROM {kind.item_table}").fetchone()[0]
            else:
                headers = conn.execute(
                    f"SELECT COUNT(*) FROM {kind.header_table} WHERE {kind.id_column} = ?",
                    (doc_id,),
                ).fetchone()[0]
                items = conn.execute(
                    f"SELECT COUNT(*) FROM {kind.item_table} WHERE {kind.id_column} = ?",
                    (doc_id,),
                ).fetchone()[0]
        return headers, items
