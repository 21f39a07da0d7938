"""
Request boundary for Purchase Orders and PARs.

DocumentService strings the three stages together for each request:

  1. DocumentValidator  -- raw body -> normalised record (or ValidationFailure)
  2. DocumentWriter     -- one transaction: guard, header, items (or PersistenceFailure)
  3. formatter          -- result or failure -> (status_code, JSON envelope)

Every RegistryError raised below is caught here, once, and formatted.
Nothing is retried.  Read and delete operations share the same boundary.
"""
import logging
from typing import Optional

from models.document import to_optional_id
from .database import Database
from .documents import PURCHASE_ORDER, PROPERTY_RECEIPT, DocumentKind
from .errors import DocumentNotFound, MissingField, RegistryError
from .formatter import (
    FormattedResponse,
    format_data,
    format_failure,
    format_message,
    format_po_details,
    format_saved,
)
from .validator import DocumentValidator, RawDocument, parse_json_object
from .writer import DocumentWriter

logger = logging.getLogger(__name__)


class DocumentService:
    """
    Save, update, read and delete documents, answering with envelopes.

    Usage:
        service = DocumentService(db)
        status, body = service.save(PURCHASE_ORDER, request_body)
    """

    def __init__(
        self,
        db: Database,
        validator: Optional[DocumentValidator] = None,
        expose_errors: bool = True,
    ) -> None:
        self.db = db
        self.validator = validator or DocumentValidator()
        self.writer = DocumentWriter(db)
        self.expose_errors = expose_errors

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, kind: DocumentKind, raw: RawDocument) -> FormattedResponse:
        """Insert a new document; any id in the body is ignored."""
        try:
            record = self.validator.validate(kind, raw, updating=False)
            result = self.writer.save(kind, record)
        except RegistryError as exc:
            return self._failure(kind, "save", exc)
        return format_saved(kind, result)

    def update(self, kind: DocumentKind, raw: RawDocument) -> FormattedResponse:
        """Update the document named by the id in the body; its items are replaced."""
        try:
            data = parse_json_object(raw)
            doc_id = getattr(self.validator.parse(kind, data), kind.id_column)
            if doc_id is None:
                raise MissingField(kind.id_column, f"{kind.code} ID is required")
            record = self.validator.validate(kind, data, updating=True)
            result = self.writer.save(kind, record, doc_id=doc_id)
        except RegistryError as exc:
            return self._failure(kind, "update", exc)
        return format_saved(kind, result)

    def delete(self, kind: DocumentKind, raw_id) -> FormattedResponse:
        try:
            doc_id = self._require_id(kind, raw_id)
            if not self.db.delete_document(kind, doc_id):
                raise DocumentNotFound(kind.display, doc_id, http_status=404)
        except RegistryError as exc:
            return self._failure(kind, "delete", exc)
        return format_message(f"{kind.display} deleted successfully")

    # ------------------------------------------------------------------
    # Purchase order reads
    # ------------------------------------------------------------------

    def get_po_details(self, raw_id) -> FormattedResponse:
        """
        Raw PO record on success.

        A missing or unknown id answers 200 with ``success: false`` because
        the PO viewer only inspects the body.
        """
        try:
            po_id = self._require_id(PURCHASE_ORDER, raw_id)
        except RegistryError as exc:
            return self._failure(PURCHASE_ORDER, "details", exc)

        record = self.db.get_purchase_order(po_id)
        if record is None:
            return FormattedResponse(200, {"success": False, "message": "Purchase Order not found"})
        return FormattedResponse(200, format_po_details(record))

    def list_pos(self, search: Optional[str] = None) -> FormattedResponse:
        return format_data(self.db.list_purchase_orders(search=search or None))

    # ------------------------------------------------------------------
    # PAR reads
    # ------------------------------------------------------------------

    def list_pars(self) -> FormattedResponse:
        return format_data(self.db.list_pars())

    def get_par(self, raw_id) -> FormattedResponse:
        try:
            par_id = self._require_id(PROPERTY_RECEIPT, raw_id)
            record = self.db.get_par(par_id)
            if record is None:
                raise DocumentNotFound(PROPERTY_RECEIPT.display, par_id, http_status=404)
        except RegistryError as exc:
            return self._failure(PROPERTY_RECEIPT, "detail", exc)
        return format_data(record)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_id(self, kind: DocumentKind, raw_id) -> int:
        doc_id = to_optional_id(raw_id)
        if doc_id is None:
            raise MissingField(kind.id_column, f"{kind.code} ID is required")
        return doc_id

    def _failure(self, kind: DocumentKind, action: str, exc: RegistryError) -> FormattedResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", kind.code, action, exc.message)
        else:
            logger.info("%s %s rejected: %s", kind.code, action, exc.message)
        return format_failure(exc, expose_errors=self.expose_errors)
