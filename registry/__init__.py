from .database import Database
from .documents import DOCUMENT_KINDS, PROPERTY_RECEIPT, PURCHASE_ORDER, DocumentKind, ItemPolicy
from .errors import (
    DocumentNotFound,
    DuplicateKey,
    InvalidItems,
    MalformedInput,
    MissingField,
    PersistenceError,
    PersistenceFailure,
    RegistryError,
    ValidationFailure,
)
from .inventory import InventoryRepository
from .predictions import NullPredictionProvider, PredictionProvider
from .service import DocumentService
from .validator import DocumentValidator
from .writer import DocumentWriter

__all__ = [
    "Database",
    "DocumentKind", "ItemPolicy", "DOCUMENT_KINDS", "PURCHASE_ORDER", "PROPERTY_RECEIPT",
    "RegistryError", "ValidationFailure", "MalformedInput", "MissingField", "InvalidItems",
    "PersistenceFailure", "DuplicateKey", "DocumentNotFound", "PersistenceError",
    "DocumentValidator", "DocumentWriter", "DocumentService",
    "InventoryRepository",
    "PredictionProvider", "NullPredictionProvider",
]
