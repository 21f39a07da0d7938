"""
Field types shared by the document request models.

Documents arrive from browser forms, so the schema is deliberately
forgiving: every field is optional and carries a declared default, text
fields are stripped, and numeric fields accept strings, blanks and
garbage (anything unparsable becomes 0).  Required-field and item checks
are done afterwards by DocumentValidator, which reports the first
missing field in a fixed order.
"""
import math
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict

MAX_ROW_ID = 2**63 - 1


def to_number(value: Any) -> float:
    """Coerce a form value to float; non-numeric or absent values become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).strip().replace(",", ""))
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def to_optional_text(value: Any) -> Optional[str]:
    return to_text(value) or None


def to_optional_id(value: Any) -> Optional[int]:
    """
    Surrogate ids may arrive as ints or numeric strings; anything else is absent.

    Ids outside SQLite's INTEGER range cannot name a row and are absent too.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    else:
        try:
            number = int(str(value).strip())
        except ValueError:
            return None
    return number if 0 < number <= MAX_ROW_ID else None


def to_item_list(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [entry if isinstance(entry, dict) else {} for entry in value]


Number = Annotated[float, BeforeValidator(to_number)]
Text = Annotated[str, BeforeValidator(to_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(to_optional_text)]
OptionalId = Annotated[Optional[int], BeforeValidator(to_optional_id)]


class DocumentModel(BaseModel):
    """Base for request payloads: unknown keys are ignored, aliases accepted."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)
