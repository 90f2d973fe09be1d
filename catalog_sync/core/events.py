"""
Manejadores de arranque y cierre del proceso de sincronizacion.
"""
import sys

from loguru import logger

from catalog_sync.core.config import Settings


def startup(settings: Settings) -> None:
    """
    Configura logging y valida la configuracion critica.

    Args:
        settings: Configuracion del proceso
    """
    # Reemplaza el sink por defecto para respetar LOG_LEVEL
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)

    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="500 MB",
            retention="10 days",
            level=settings.LOG_LEVEL,
        )

    _validate_config(settings)
    logger.debug(f"Feed: {settings.FEED_URL}")


def _validate_config(settings: Settings) -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not settings.DB_PASSWORD:
        warnings.append("DB_PASSWORD vacio - la conexion puede fallar")
    if not settings.FEED_URL.lower().startswith(("http://", "https://")):
        warnings.append(f"FEED_URL no parece una URL HTTP: {settings.FEED_URL}")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown() -> None:
    """Vacia los sinks de logging antes de salir."""
    logger.complete()
