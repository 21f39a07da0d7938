"""
Descriptors for the two document families.

Purchase Orders and Property Acknowledgement Receipts have the same
shape: a header with a human-assigned document number (unique) and an
integer surrogate id, plus a child table of line items that is replaced
wholesale on every update.  DocumentKind captures the per-family table
and column names so DocumentValidator and DocumentWriter stay generic.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Type

from models.document import DocumentModel
from models.par import PARRequest
from models.purchase_order import PurchaseOrderRequest


class ItemPolicy(str, Enum):
    """What to do with line items that have no description."""
    REJECT = "reject"   # fail the whole request with InvalidItems
    SKIP   = "skip"     # drop the row and carry on
    KEEP   = "keep"     # store it with an empty description


@dataclass(frozen=True)
class DocumentKind:
    code: str                       # "PO" | "PAR"
    display: str                    # used in success messages
    key_label: str                  # used in duplicate-key messages
    request_model: Type[DocumentModel]

    header_table: str
    id_column: str
    key_column: str
    date_column: str
    header_columns: tuple[str, ...]         # mutable columns, attribute == column
    optional_date_columns: tuple[str, ...]

    item_table: str
    item_id_column: str
    item_columns: Mapping[str, str]         # column -> request item attribute
    description_attr: str
    item_date_attr: Optional[str]

    required_fields: tuple[str, ...]
    create_policy: ItemPolicy
    update_policy: ItemPolicy

    recipient_column: Optional[str] = None  # find-or-create target (PAR only)

    def policy_for(self, updating: bool) -> ItemPolicy:
        return self.update_policy if updating else self.create_policy


PURCHASE_ORDER = DocumentKind(
    code="PO",
    display="Purchase Order",
    key_label="PO No.",
    request_model=PurchaseOrderRequest,
    header_table="purchase_orders",
    id_column="po_id",
    key_column="po_no",
    date_column="po_date",
    header_columns=(
        "po_no", "ref_no", "supplier_name", "supplier_address", "email", "tel",
        "po_date", "mode_of_procurement", "pr_no", "pr_date",
        "place_of_delivery", "delivery_date", "payment_term", "delivery_term",
        "obligation_request_no", "obligation_amount", "total_amount",
    ),
    optional_date_columns=("pr_date", "delivery_date"),
    item_table="po_items",
    item_id_column="po_item_id",
    item_columns={
        "item_name":        "item_name",
        "item_description": "item_description",
        "unit":             "unit",
        "quantity":         "quantity",
        "unit_cost":        "unit_cost",
        "amount":           "line_total",
    },
    description_attr="item_description",
    item_date_attr=None,
    required_fields=("po_no", "supplier_name", "po_date", "items"),
    create_policy=ItemPolicy.KEEP,
    update_policy=ItemPolicy.SKIP,
)

PROPERTY_RECEIPT = DocumentKind(
    code="PAR",
    display="PAR",
    key_label="PAR No.",
    request_model=PARRequest,
    header_table="property_acknowledgement_receipts",
    id_column="par_id",
    key_column="par_no",
    date_column="date_acquired",
    header_columns=(
        "par_no", "entity_name", "date_acquired", "received_by",
        "position", "department", "remarks", "total_amount",
    ),
    optional_date_columns=(),
    item_table="par_items",
    item_id_column="par_item_id",
    item_columns={
        "quantity":        "quantity",
        "unit":            "unit",
        "description":     "description",
        "property_number": "property_number",
        "date_acquired":   "date_acquired",
        "amount":          "amount",
    },
    description_attr="description",
    item_date_attr="date_acquired",
    required_fields=("par_no", "entity_name", "date_acquired", "received_by", "items"),
    create_policy=ItemPolicy.REJECT,
    update_policy=ItemPolicy.REJECT,
    recipient_column="received_by",
)

DOCUMENT_KINDS = {kind.code: kind for kind in (PURCHASE_ORDER, PROPERTY_RECEIPT)}
