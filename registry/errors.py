"""
Exception hierarchy for document and inventory requests.

    RegistryError
    ├── ValidationFailure        HTTP 200, nothing was written
    │   ├── MalformedInput       body is not a JSON object
    │   ├── MissingField         first missing required field
    │   └── InvalidItems         1-based indices of items without a description
    └── PersistenceFailure       HTTP 500, transaction rolled back
        ├── DuplicateKey         natural key already used by another header
        ├── DocumentNotFound     target id does not exist (404 on reads and deletes)
        └── PersistenceError     any other storage failure

Every failure is terminal for the request.  The API layer turns it into
``{"success": false, "message": ...}`` with ``http_status``.
"""
from typing import Iterable, Optional


class RegistryError(Exception):
    """Base class for every failure reported in the JSON envelope."""

    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ----------------------------------------------------------------------
# Validation (raised before any SQL runs)
# ----------------------------------------------------------------------

class ValidationFailure(RegistryError):
    http_status = 200


class MalformedInput(ValidationFailure):
    def __init__(self, message: str = "Invalid data received") -> None:
        super().__init__(message)


class MissingField(ValidationFailure):
    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class InvalidItems(ValidationFailure):
    def __init__(self, indices: Iterable[int]) -> None:
        self.indices = sorted(set(indices))
        joined = ", ".join(str(i) for i in self.indices)
        super().__init__(f"Please add description for items: {joined}")


# ----------------------------------------------------------------------
# Persistence (raised inside the write transaction)
# ----------------------------------------------------------------------

class PersistenceFailure(RegistryError):
    http_status = 500


class DuplicateKey(PersistenceFailure):
    def __init__(
        self,
        key: str,
        label: str = "Document No.",
        message: Optional[str] = None,
    ) -> None:
        self.key = key
        super().__init__(
            message
            or f'{label} "{key}" already exists. Please use a different {label.rstrip(".")}.'
        )


class DocumentNotFound(PersistenceFailure):
    """
    Target id does not exist.

    Raised inside an update transaction it is a persistence failure (500);
    read and delete endpoints raise it with http_status=404.
    """

    def __init__(self, label: str, doc_id, http_status: int = 500) -> None:
        self.doc_id = doc_id
        self.http_status = http_status
        super().__init__(f"{label} not found")


class PersistenceError(PersistenceFailure):
    pass
