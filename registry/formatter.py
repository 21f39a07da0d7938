"""
Maps write results and failures onto the JSON envelope the front end reads.

Every document endpoint answers with ``{"success": bool, ...}``:

  success         200  {success, message, po_id|par_id, total_amount}
  validation      200  {success: false, message}
  persistence     500  {success: false, message}   (404 for an unknown id on reads and deletes)

PO details is the one exception: the browser expects the raw record with
legacy alias keys on success, so format_po_details() returns it unwrapped.
"""
from typing import Any, NamedTuple

from models.result import SaveResult
from .documents import DocumentKind
from .errors import PersistenceError, RegistryError

GENERIC_STORAGE_MESSAGE = "A storage error occurred. Please try again later."


class FormattedResponse(NamedTuple):
    status_code: int
    body: Any


def format_saved(kind: DocumentKind, result: SaveResult) -> FormattedResponse:
    verb = "updated" if result.updated else "saved"
    return FormattedResponse(200, {
        "success": True,
        "message": f"{kind.display} {verb} successfully",
        kind.id_column: result.doc_id,
        "total_amount": result.total_amount,
    })


def format_message(message: str) -> FormattedResponse:
    return FormattedResponse(200, {"success": True, "message": message})


def format_data(data: Any) -> FormattedResponse:
    return FormattedResponse(200, {"success": True, "data": data})


def format_failure(exc: RegistryError, expose_errors: bool = True) -> FormattedResponse:
    """
    Envelope for any RegistryError.

    Driver text inside PersistenceError can leak table names; with
    expose_errors off it is replaced by a generic message.
    """
    message = exc.message
    if isinstance(exc, PersistenceError) and not expose_errors:
        message = GENERIC_STORAGE_MESSAGE
    return FormattedResponse(exc.http_status, {"success": False, "message": message})


def format_po_details(record: dict) -> dict:
    """
    Raw PO record for the PO viewer.

    Each header field appears under its column name and, where the viewer
    historically used another name, under that alias as well.  Item
    amounts are recomputed as quantity * unit_cost.
    """
    items = []
    computed_total = 0.0
    for row in record.get("items", []):
        quantity = row.get("quantity") or 0
        unit_cost = row.get("unit_cost") or 0
        amount = quantity * unit_cost
        computed_total += amount
        items.append({
            "id": row["po_item_id"],
            "item_number": row["po_item_id"],
            "item_name": row.get("item_name") or "Unknown Item",
            "unit": row.get("unit") or "pc",
            "description": row.get("item_description") or "",
            "quantity": quantity,
            "unit_cost": unit_cost,
            "amount": amount,
        })

    return {
        "po_id": record["po_id"],
        "po_no": record["po_no"],
        "po_number": record["po_no"],
        "date": record["po_date"],
        "po_date": record["po_date"],
        "ref_no": record.get("ref_no"),
        "ref_number": record.get("ref_no"),
        "supplier": record["supplier_name"],
        "supplier_name": record["supplier_name"],
        "supplier_address": record.get("supplier_address") or "",
        "supplier_email": record.get("email") or "",
        "email": record.get("email") or "",
        "tel": record.get("tel") or "",
        "mode_of_procurement": record.get("mode_of_procurement"),
        "procurement_mode": record.get("mode_of_procurement"),
        "pr_no": record.get("pr_no"),
        "pr_number": record.get("pr_no"),
        "pr_date": record.get("pr_date"),
        "place_of_delivery": record.get("place_of_delivery"),
        "delivery_place": record.get("place_of_delivery"),
        "delivery_date": record.get("delivery_date"),
        "payment_term": record.get("payment_term"),
        "delivery_term": record.get("delivery_term"),
        "obligation_number": record.get("obligation_request_no"),
        "obligation_request_no": record.get("obligation_request_no"),
        "obligation_amount": record.get("obligation_amount") or computed_total,
        "items": items,
        "total_amount": record.get("total_amount") or computed_total,
    }
