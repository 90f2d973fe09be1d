"""
Entidades del dominio.
"""
from catalog_sync.domain.entities.catalog_records import (
    AttributeRecord,
    CategoryRecord,
    CurrencyRecord,
    OfferRecord,
)

__all__ = [
    "AttributeRecord",
    "CategoryRecord",
    "CurrencyRecord",
    "OfferRecord",
]
