"""
Constantes relacionadas con los tipos de entidad del catalogo.
"""
from enum import Enum


class EntityKind(str, Enum):
    """Tipos de entidad sincronizados desde el feed."""
    CURRENCY = "currency"
    CATEGORY = "category"
    OFFER = "offer"


class CategoryNameSource(str, Enum):
    """De donde se toma el nombre de una categoria (varia segun el proveedor)."""
    TEXT = "text"
    CHILD = "child"


# Orden fijo de sincronizacion: las ofertas referencian monedas y categorias
SYNC_ORDER = (EntityKind.CURRENCY, EntityKind.CATEGORY, EntityKind.OFFER)

NO_CHANGES_MARKER = "-- No changes needed"
OFFERS_DRIFT_MARKER = "-- Offers structure changes are handled via offer_attributes table."
