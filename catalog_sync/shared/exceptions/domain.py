"""
Excepciones relacionadas con la logica de dominio.
"""
from catalog_sync.shared.exceptions.base import AppException


class DomainException(AppException):
    """Excepcion base para errores de dominio."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", details=None):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )


class UnknownKindError(DomainException):
    """Excepcion cuando se solicita un tipo de entidad no soportado."""

    def __init__(self, kind: str, valid_kinds: list[str]):
        super().__init__(
            message=f"Tipo de entidad desconocido: '{kind}'",
            error_code="UNKNOWN_KIND",
            details={
                "kind_provided": kind,
                "valid_kinds": valid_kinds
            }
        )
        self.kind = kind


class ExtractionError(DomainException):
    """
    Error al extraer un campo del feed.

    Nunca sale de los extractores: se absorbe localmente y el campo
    toma su valor por defecto (o el registro se descarta).
    """

    def __init__(self, field: str, raw_value: str):
        super().__init__(
            message=f"Valor invalido para '{field}': {raw_value!r}",
            error_code="EXTRACTION_ERROR",
            details={"field": field, "raw_value": raw_value}
        )
        self.field = field
