"""
Entidades de dominio: registros normalizados extraidos del feed.

Son valores transitorios: se construyen en cada sync a partir del feed
actual y se consumen inmediatamente por el sincronizador.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class CurrencyRecord:
    """Moneda del feed. currency_id es la identidad estable."""

    currency_id: str
    code: str
    name: str = ""
    rate: Decimal = Decimal("0")

    def __post_init__(self):
        if not self.currency_id:
            raise ValueError("currency_id no puede estar vacio")

    def to_row(self) -> Dict[str, Any]:
        return {
            "currency_id": self.currency_id,
            "code": self.code,
            "name": self.name,
            "rate": self.rate,
        }


@dataclass(frozen=True)
class CategoryRecord:
    """Categoria del feed. parent_id se guarda sin verificar integridad."""

    category_id: int
    name: str = ""
    parent_id: Optional[int] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "category_id": self.category_id,
            "name": self.name,
            "parent_id": self.parent_id,
        }


@dataclass(frozen=True)
class AttributeRecord:
    """Parametro <param> de una oferta. No tiene identidad propia."""

    param_name: str
    param_value: str


@dataclass(frozen=True)
class OfferRecord:
    """
    Oferta del feed. vendor_code es la identidad real.

    Los atributos pertenecen por completo a la oferta: cada sync
    reemplaza el conjunto entero (delete + insert), nunca se mezclan.
    """

    vendor_code: str
    offer_id: Optional[str] = None
    available: bool = False
    name: str = ""
    price: Decimal = Decimal("0")
    currency_id: str = ""
    category_id: int = 0
    picture: str = ""
    description: str = ""
    attributes: Tuple[AttributeRecord, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.vendor_code:
            raise ValueError("vendor_code no puede estar vacio")

    def to_row(self) -> Dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "vendor_code": self.vendor_code,
            "available": self.available,
            "name": self.name,
            "price": self.price,
            "currency_id": self.currency_id,
            "category_id": self.category_id,
            "picture": self.picture,
            "description": self.description,
        }

    def attribute_rows(self) -> list[Dict[str, Any]]:
        return [
            {
                "offer_vendor_code": self.vendor_code,
                "param_name": attr.param_name,
                "param_value": attr.param_value,
            }
            for attr in self.attributes
        ]
