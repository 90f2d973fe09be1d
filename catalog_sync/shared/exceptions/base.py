"""
Excepcion base para todas las excepciones personalizadas del sincronizador.
"""
from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Excepcion base de la aplicacion.
    Todas las excepciones personalizadas deben heredar de esta clase.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Inicializa la excepcion.

        Args:
            message: Mensaje de error descriptivo
            error_code: Codigo de error personalizado
            details: Detalles adicionales del error
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)
