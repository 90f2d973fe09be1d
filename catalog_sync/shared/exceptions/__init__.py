"""
Excepciones de la aplicacion.
"""
from catalog_sync.shared.exceptions.base import AppException
from catalog_sync.shared.exceptions.domain import (
    DomainException,
    ExtractionError,
    UnknownKindError,
)
from catalog_sync.shared.exceptions.sync import (
    ConfigError,
    FetchError,
    ParseError,
    SyncError,
)

__all__ = [
    "AppException",
    "DomainException",
    "ExtractionError",
    "UnknownKindError",
    "ConfigError",
    "FetchError",
    "ParseError",
    "SyncError",
]
