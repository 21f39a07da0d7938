"""
Versioned schema migrations.

Each migration runs once, inside its own transaction, and is recorded in
schema_migrations.  apply_migrations() is idempotent: it only runs
versions newer than the highest one recorded.  It is invoked by
``main.py migrate`` and when the API app is created, never from a
request handler.

Natural keys (po_no, par_no) and recipient names are UNIQUE at the
storage layer so the application-level duplicate checks cannot be
raced past.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from typing import NamedTuple

logger = logging.getLogger(__name__)


class Migration(NamedTuple):
    version: int
    description: str
    sql: str


_V1_DOCUMENTS = """
CREATE TABLE users (
    user_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    full_name   TEXT    NOT NULL,
    position    TEXT,
    department  TEXT,
    created_at  TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at  TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE UNIQUE INDEX ux_users_full_name ON users (full_name);

CREATE TABLE purchase_orders (
    po_id               INTEGER PRIMARY KEY AUTOINCREMENT,
    po_no               TEXT    NOT NULL,
    ref_no              TEXT,
    supplier_name       TEXT    NOT NULL,
    po_date             TEXT    NOT NULL,   -- YYYY-MM-DD
    mode_of_procurement TEXT,
    pr_no               TEXT,
    pr_date             TEXT,
    obligation_amount   REAL,
    total_amount        REAL    NOT NULL DEFAULT 0,
    created_at          TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at          TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE UNIQUE INDEX ux_purchase_orders_po_no ON purchase_orders (po_no);
CREATE INDEX idx_purchase_orders_date ON purchase_orders (po_date DESC);

CREATE TABLE po_items (
    po_item_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    po_id             INTEGER NOT NULL
                      REFERENCES purchase_orders (po_id) ON DELETE CASCADE,
    item_name         TEXT,
    item_description  TEXT    NOT NULL DEFAULT '',
    unit              TEXT,
    quantity          REAL    NOT NULL DEFAULT 0,
    unit_cost         REAL    NOT NULL DEFAULT 0,
    amount            REAL    NOT NULL DEFAULT 0
);
CREATE INDEX idx_po_items_po ON po_items (po_id);

CREATE TABLE property_acknowledgement_receipts (
    par_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    par_no         TEXT    NOT NULL,
    entity_name    TEXT    NOT NULL,
    date_acquired  TEXT    NOT NULL,        -- YYYY-MM-DD
    received_by    INTEGER NOT NULL REFERENCES users (user_id),
    position       TEXT,
    department     TEXT,
    remarks        TEXT,
    total_amount   REAL    NOT NULL DEFAULT 0,
    created_at     TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at     TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE UNIQUE INDEX ux_par_par_no ON property_acknowledgement_receipts (par_no);
CREATE INDEX idx_par_date ON property_acknowledgement_receipts (date_acquired DESC);

CREATE TABLE par_items (
    par_item_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    par_id           INTEGER NOT NULL
                     REFERENCES property_acknowledgement_receipts (par_id) ON DELETE CASCADE,
    quantity         REAL    NOT NULL DEFAULT 0,
    unit             TEXT,
    description      TEXT    NOT NULL,
    property_number  TEXT,
    date_acquired    TEXT,
    amount           REAL    NOT NULL DEFAULT 0
);
CREATE INDEX idx_par_items_par ON par_items (par_id);
"""

_V2_INVENTORY = """
CREATE TABLE inventory_items (
    item_id              TEXT PRIMARY KEY,
    item_name            TEXT NOT NULL,
    brand_model          TEXT,
    serial_number        TEXT,
    purchase_date        TEXT,
    warranty_expiration  TEXT,
    assigned_to          TEXT,
    location             TEXT,
    condition            TEXT,
    notes                TEXT,
    date_added           TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE UNIQUE INDEX ux_inventory_serial
    ON inventory_items (serial_number) WHERE serial_number IS NOT NULL;

CREATE TABLE location_history (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id            TEXT NOT NULL
                       REFERENCES inventory_items (item_id) ON DELETE CASCADE,
    previous_location  TEXT,
    new_location       TEXT,
    changed_by         TEXT NOT NULL DEFAULT 'System',
    notes              TEXT,
    changed_at         TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX idx_location_history_item ON location_history (item_id, changed_at DESC);
"""

# Supplier contact and delivery columns used to be added on demand by the
# PO update handler; they are a regular migration now.
_V3_PO_DELIVERY = """
ALTER TABLE purchase_orders ADD COLUMN supplier_address       TEXT;
ALTER TABLE purchase_orders ADD COLUMN email                  TEXT;
ALTER TABLE purchase_orders ADD COLUMN tel                    TEXT;
ALTER TABLE purchase_orders ADD COLUMN place_of_delivery      TEXT;
ALTER TABLE purchase_orders ADD COLUMN delivery_date          TEXT;
ALTER TABLE purchase_orders ADD COLUMN payment_term           TEXT;
ALTER TABLE purchase_orders ADD COLUMN delivery_term          TEXT;
ALTER TABLE purchase_orders ADD COLUMN obligation_request_no  TEXT;
"""

MIGRATIONS: list[Migration] = [
    Migration(1, "documents: users, purchase orders, PARs and their items", _V1_DOCUMENTS),
    Migration(2, "inventory items and location history", _V2_INVENTORY),
    Migration(3, "purchase order supplier contact and delivery columns", _V3_PO_DELIVERY),
]

_BOOKKEEPING = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version      INTEGER PRIMARY KEY,
    description  TEXT NOT NULL,
    applied_at   TEXT NOT NULL
);
"""


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied version; 0 for a database never migrated.  Read-only."""
    exists = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'schema_migrations'"
    ).fetchone()
    if exists is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_migrations").fetchone()
    return row[0] or 0


def apply_migrations(
    conn: sqlite3.Connection,
    migrations: list[Migration] = MIGRATIONS,
) -> list[int]:
    """
    Apply every pending migration on *conn* (an autocommit connection).

    Returns the versions applied by this call, oldest first.  A failing
    migration is rolled back and re-raised; earlier ones stay applied.
    """
    applied: list[int] = []
    conn.executescript(_BOOKKEEPING)
    start = current_version(conn)

    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version <= start:
            continue
        try:
            # executescript() runs the DDL inside the BEGIN opened here
            conn.executescript(f"BEGIN;\n{migration.sql}")
            conn.execute(
                "INSERT INTO schema_migrations (version, description, applied_at) "
                "VALUES (?, ?, ?)",
                (
                    migration.version,
                    migration.description,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.execute("COMMIT")
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.error("Migration %03d failed: %s", migration.version, migration.description)
            raise
        logger.info("Applied migration %03d: %s", migration.version, migration.description)
        applied.append(migration.version)

    return applied
