"""
Request validation for document writes.

Checks, in order, before the writer is ever invoked:
  1. Body is a well-formed JSON object              -> MalformedInput
  2. Required fields present, in declared order     -> MissingField (first only)
  3. Line items have a description (per-endpoint)   -> InvalidItems (1-based)
  4. Dates normalised to YYYY-MM-DD; unparsable header dates fall back to
     today, unparsable item dates to the header date
  5. Numbers coerced (done by the request schema; garbage becomes 0);
     Line totals too large for a float          -> MalformedInput

The returned record carries a server-computed total_amount; whatever
total the client sent is discarded.
"""
import json
import logging
import math
from datetime import date
from typing import Any, Callable, Optional, Union

from dateutil import parser as date_parser
from pydantic import ValidationError

from models.document import DocumentModel
from .documents import DocumentKind, ItemPolicy
from .errors import InvalidItems, MalformedInput, MissingField

logger = logging.getLogger(__name__)

RawDocument = Union[bytes, str, dict]


def normalize_date(value: Optional[str]) -> Optional[str]:
    """Return *value* as YYYY-MM-DD, or None when it cannot be parsed."""
    if not value:
        return None
    try:
        return date_parser.parse(value).date().isoformat()
    except (ValueError, OverflowError):
        return None


def compute_total(items: list) -> float:
    return sum(item.line_total for item in items)


def parse_json_object(raw: RawDocument) -> dict:
    """Decode a request body; anything but a non-empty JSON object is malformed."""
    if isinstance(raw, dict):
        data: Any = raw
    else:
        try:
            data = json.loads(raw)
        except (ValueError, TypeError):
            raise MalformedInput() from None
    if not isinstance(data, dict) or not data:
        raise MalformedInput()
    return data


class DocumentValidator:
    """
    Turns a raw request body into a normalised, typed document record.

    Usage:
        validator = DocumentValidator()
        record = validator.validate(PURCHASE_ORDER, request_body)
    """

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today

    def parse(self, kind: DocumentKind, raw: RawDocument) -> DocumentModel:
        """Steps 1 and 5: JSON decode and schema coercion, no business checks."""
        data = parse_json_object(raw)
        try:
            return kind.request_model.model_validate(data)
        except ValidationError as exc:
            logger.debug("%s payload rejected by schema: %s", kind.code, exc)
            raise MalformedInput() from None

    def validate(
        self,
        kind: DocumentKind,
        raw: RawDocument,
        updating: bool = False,
    ) -> DocumentModel:
        record = self.parse(kind, raw)
        self._check_required(kind, record)
        items = self._check_items(kind, record.items, kind.policy_for(updating))

        header_date = normalize_date(getattr(record, kind.date_column))
        if header_date is None:
            header_date = self._today().isoformat()
            logger.info(
                "%s %s: unparsable %s %r defaulted to today (%s)",
                kind.code, getattr(record, kind.key_column), kind.date_column,
                getattr(record, kind.date_column), header_date,
            )

        updates: dict[str, Any] = {
            kind.date_column: header_date,
            "items": [self._normalize_item(kind, item, header_date) for item in items],
        }
        for column in kind.optional_date_columns:
            updates[column] = normalize_date(getattr(record, column))

        normalized = record.model_copy(update=updates)
        total = compute_total(normalized.items)
        if not math.isfinite(total):
            logger.info("%s %s: line totals overflow", kind.code, getattr(record, kind.key_column))
            raise MalformedInput()
        normalized.total_amount = total
        return normalized

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def _check_required(self, kind: DocumentKind, record: DocumentModel) -> None:
        for name in kind.required_fields:
            if not getattr(record, name):
                raise MissingField(name)

    def _check_items(self, kind: DocumentKind, items: list, policy: ItemPolicy) -> list:
        blank = [
            index
            for index, item in enumerate(items, start=1)
            if not getattr(item, kind.description_attr)
        ]
        if not blank or policy is ItemPolicy.KEEP:
            return list(items)
        if policy is ItemPolicy.REJECT:
            raise InvalidItems(blank)

        kept = [
            item for index, item in enumerate(items, start=1) if index not in blank
        ]
        if not kept:
            raise InvalidItems(blank)
        logger.info("%s: skipped %d item(s) without a description: %s",
                    kind.code, len(blank), blank)
        return kept

    def _normalize_item(self, kind: DocumentKind, item, header_date: str):
        if kind.item_date_attr is None:
            return item
        item_date = normalize_date(getattr(item, kind.item_date_attr))
        if item_date is None:
            item_date = header_date
        return item.model_copy(update={kind.item_date_attr: item_date})
