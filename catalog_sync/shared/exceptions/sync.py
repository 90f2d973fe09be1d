"""
Excepciones del pipeline feed -> PostgreSQL.
"""
from typing import Optional

from catalog_sync.shared.exceptions.base import AppException


class ConfigError(AppException):
    """Error de configuracion del pipeline."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="CONFIG_ERROR")


class FetchError(AppException):
    """Error de red/transporte al descargar el feed."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            message=f"No se pudo descargar el feed {url}: {reason}",
            error_code="FETCH_ERROR",
            details={"url": url}
        )
        self.url = url


class ParseError(AppException):
    """El documento descargado no es XML bien formado."""

    def __init__(self, reason: str, source: Optional[str] = None):
        super().__init__(
            message=f"Feed XML mal formado: {reason}",
            error_code="PARSE_ERROR",
            details={"source": source} if source else None
        )


class SyncError(AppException):
    """
    Fallo durante la sincronizacion de un tipo de entidad.

    Cuando se levanta desde la fase de base de datos, la transaccion
    de ese tipo ya fue revertida.
    """

    def __init__(self, kind: str, reason: str):
        super().__init__(
            message=f"Fallo la sincronizacion de '{kind}': {reason}",
            error_code="SYNC_ERROR",
            details={"kind": kind}
        )
        self.kind = kind
