"""
Inventory register: tracked assets and their location history.

Items are keyed by the operator-assigned item_id; serial numbers, when
given, are unique across the register.  Moving an item to a new location
writes a location_history row in the same transaction as the update.
"""
import logging
import sqlite3
from typing import Optional

from pydantic import ValidationError

from models.inventory import InventoryItem
from .database import Database
from .errors import DocumentNotFound, DuplicateKey, MalformedInput, MissingField, PersistenceError
from .validator import RawDocument, normalize_date, parse_json_object

logger = logging.getLogger(__name__)

_ITEM_COLUMNS = (
    "item_id", "item_name", "brand_model", "serial_number", "purchase_date",
    "warranty_expiration", "assigned_to", "location", "condition", "notes",
)
_DATE_COLUMNS = ("purchase_date", "warranty_expiration")
_SEARCH_COLUMNS = ("item_name", "brand_model", "serial_number", "assigned_to", "location", "notes")

DUPLICATE_MESSAGE = "Item ID or Serial Number already exists"
REQUIRED_MESSAGE = "Item ID and name are required"


def _format_row(row: sqlite3.Row) -> dict:
    item = dict(row)
    for column in _DATE_COLUMNS:
        if item.get(column):
            item[column] = normalize_date(item[column]) or item[column]
    return item


class InventoryRepository:
    """CRUD over inventory_items plus the location_history audit trail."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_items(self, search: Optional[str] = None) -> list[dict]:
        """
        All items, most recently tagged first.

        Args:
            search:  Substring match on name, model, serial, assignee,
                     location or notes.
        """
        sql = "SELECT * FROM inventory_items"
        params: list = []
        if search:
            sql += " WHERE " + " OR ".join(f"{c} LIKE ?" for c in _SEARCH_COLUMNS)
            params = [f"%{search}%"] * len(_SEARCH_COLUMNS)
        sql += " ORDER BY item_id DESC"

        with self.db.reader() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_format_row(r) for r in rows]

    def get(self, item_id: str) -> dict:
        with self.db.reader() as conn:
            row = conn.execute(
                "SELECT * FROM inventory_items WHERE item_id = ?", (item_id,)
            ).fetchone()
        if row is None:
            raise DocumentNotFound("Item", item_id, http_status=404)
        return _format_row(row)

    def history(self, item_id: str) -> list[dict]:
        """Location changes for one item, newest first."""
        with self.db.reader() as conn:
            rows = conn.execute(
                """
                SELECT id, item_id, previous_location, new_location,
                       changed_by, notes, changed_at
                FROM location_history
                WHERE item_id = ?
                ORDER BY changed_at DESC, id DESC
                """,
                (item_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, raw: RawDocument) -> InventoryItem:
        item = self._parse(raw)
        values = self._values(item)

        try:
            with self.db.transaction() as conn:
                self._guard_unique(conn, item, exclude_self=False)
                columns = ", ".join(f'"{c}"' for c in _ITEM_COLUMNS)
                placeholders = ", ".join(f":{c}" for c in _ITEM_COLUMNS)
                conn.execute(
                    f"INSERT INTO inventory_items ({columns}) VALUES ({placeholders})",
                    values,
                )
        except sqlite3.IntegrityError as exc:
            logger.warning("Inventory item %s rejected by storage: %s", item.item_id, exc)
            raise DuplicateKey(item.item_id, message=DUPLICATE_MESSAGE) from exc
        except sqlite3.Error as exc:
            logger.error("Error adding inventory item %s: %s", item.item_id, exc)
            raise PersistenceError(str(exc)) from exc

        logger.info("Added inventory item %s (%s)", item.item_id, item.item_name)
        return item

    def update(self, raw: RawDocument, changed_by: str = "System") -> InventoryItem:
        """
        Overwrite every column of an existing item.

        A change of location is recorded in location_history in the same
        transaction.
        """
        item = self._parse(raw)
        values = self._values(item)

        try:
            with self.db.transaction() as conn:
                current = conn.execute(
                    "SELECT location FROM inventory_items WHERE item_id = ?",
                    (item.item_id,),
                ).fetchone()
                if current is None:
                    raise DocumentNotFound("Item", item.item_id)
                self._guard_unique(conn, item, exclude_self=True)

                assignments = ", ".join(f'"{c}" = :{c}' for c in _ITEM_COLUMNS if c != "item_id")
                conn.execute(
                    f"UPDATE inventory_items SET {assignments} WHERE item_id = :item_id",
                    values,
                )

                previous = current["location"] or ""
                if previous != item.location:
                    conn.execute(
                        "INSERT INTO location_history "
                        "(item_id, previous_location, new_location, changed_by, notes) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (
                            item.item_id, previous, item.location, changed_by,
                            f"Location changed from {previous or 'None'} "
                            f"to {item.location or 'None'}",
                        ),
                    )
                    logger.info("Inventory item %s moved: %r -> %r",
                                item.item_id, previous, item.location)
        except sqlite3.IntegrityError as exc:
            logger.warning("Inventory item %s rejected by storage: %s", item.item_id, exc)
            raise DuplicateKey(item.item_id, message=DUPLICATE_MESSAGE) from exc
        except sqlite3.Error as exc:
            logger.error("Error updating inventory item %s: %s", item.item_id, exc)
            raise PersistenceError(str(exc)) from exc

        logger.info("Updated inventory item %s", item.item_id)
        return item

    def delete(self, item_id: str) -> None:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM inventory_items WHERE item_id = ?", (item_id,))
            if cur.rowcount == 0:
                raise DocumentNotFound("Item", item_id, http_status=404)
        logger.info("Deleted inventory item %s", item_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parse(self, raw: RawDocument) -> InventoryItem:
        data = parse_json_object(raw)
        try:
            item = InventoryItem.model_validate(data)
        except ValidationError:
            raise MalformedInput() from None
        if not item.item_id or not item.item_name:
            raise MissingField("item_id" if not item.item_id else "item_name", REQUIRED_MESSAGE)
        return item

    def _values(self, item: InventoryItem) -> dict:
        values = {column: getattr(item, column) for column in _ITEM_COLUMNS}
        for column in _DATE_COLUMNS:
            values[column] = normalize_date(values[column])
        return values

    def _guard_unique(self, conn: sqlite3.Connection, item: InventoryItem, exclude_self: bool) -> None:
        if exclude_self:
            if not item.serial_number:
                return
            row = conn.execute(
                "SELECT item_id FROM inventory_items WHERE serial_number = ? AND item_id != ?",
                (item.serial_number, item.item_id),
            ).fetchone()
        else:
            row = conn.execute(
                "SELECT item_id FROM inventory_items WHERE item_id = ? "
                "OR (serial_number IS NOT NULL AND serial_number = ?)",
                (item.item_id, item.serial_number),
            ).fetchone()
        if row is not None:
            logger.info("Inventory item %s clashes with %s", item.item_id, row["item_id"])
            raise DuplicateKey(item.item_id, message=DUPLICATE_MESSAGE)
