"""
Mapeos feed -> Postgres por tipo de entidad.

Este es el unico punto donde se define, para cada tipo:
- tabla destino, DDL y columnas esperadas
- ruta del contenedor en el feed y extractor
- clave natural (conflict target del UPSERT) y columnas a escribir

Agregar un tipo nuevo significa agregar una entrada a ENTITY_SCHEMAS.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from catalog_sync.shared.constants.entity_constants import EntityKind
from catalog_sync.shared.exceptions.domain import UnknownKindError

from .extractors import (
    ExtractionOptions,
    ExtractionStats,
    extract_categories,
    extract_currencies,
    extract_offers,
)
from .types import FeedNode

Extractor = Callable[
    [FeedNode, str, Optional[ExtractionOptions], Optional[ExtractionStats]], Iterator[Any]
]

ATTRIBUTES_TABLE = "offer_attributes"
ATTRIBUTE_COLUMNS = ("offer_vendor_code", "param_name", "param_value")


@dataclass(frozen=True)
class EntitySchema:
    """
    Config de un tipo de entidad del feed -> una tabla Postgres.

    owned_tables: todas las tablas que crea el DDL (para offers incluye
    la tabla lateral de atributos).
    """

    kind: EntityKind
    table: str
    container_path: str
    ddl: str
    expected_columns: frozenset[str]
    natural_key: str
    upsert_columns: tuple[str, ...]
    extractor: Extractor
    owned_tables: tuple[str, ...] = ()
    has_attributes: bool = False

    def extract(
        self,
        root: FeedNode,
        options: Optional[ExtractionOptions] = None,
        stats: Optional[ExtractionStats] = None,
    ) -> Iterator[Any]:
        return self.extractor(root, self.container_path, options, stats)


CURRENCIES_DDL = (
    "CREATE TABLE IF NOT EXISTS currencies (\n"
    "    id SERIAL PRIMARY KEY,\n"
    "    currency_id VARCHAR(10) UNIQUE,\n"
    "    code VARCHAR(10),\n"
    "    name TEXT,\n"
    "    rate NUMERIC\n"
    ");"
)

CATEGORIES_DDL = (
    "CREATE TABLE IF NOT EXISTS categories (\n"
    "    id SERIAL PRIMARY KEY,\n"
    "    category_id INTEGER UNIQUE,\n"
    "    name TEXT,\n"
    "    parent_id INTEGER\n"
    ");"
)

OFFERS_DDL = (
    "CREATE TABLE IF NOT EXISTS offers (\n"
    "    id SERIAL PRIMARY KEY,\n"
    "    offer_id VARCHAR(50) UNIQUE,\n"
    "    vendor_code VARCHAR(100) UNIQUE,\n"
    "    available BOOLEAN,\n"
    "    name TEXT,\n"
    "    price NUMERIC,\n"
    "    currency_id VARCHAR(10),\n"
    "    category_id INTEGER,\n"
    "    picture TEXT,\n"
    "    description TEXT\n"
    ");\n"
    "\n"
    "CREATE TABLE IF NOT EXISTS offer_attributes (\n"
    "    id SERIAL PRIMARY KEY,\n"
    "    offer_vendor_code VARCHAR(100) REFERENCES offers(vendor_code),\n"
    "    param_name VARCHAR(255),\n"
    "    param_value TEXT\n"
    ");\n"
    "\n"
    "CREATE INDEX IF NOT EXISTS idx_offer_attributes_vendor_code ON offer_attributes(offer_vendor_code);"
)


ENTITY_SCHEMAS: dict[EntityKind, EntitySchema] = {
    EntityKind.CURRENCY: EntitySchema(
        kind=EntityKind.CURRENCY,
        table="currencies",
        container_path="currencies/currency",
        ddl=CURRENCIES_DDL,
        expected_columns=frozenset({"id", "currency_id", "code", "name", "rate"}),
        natural_key="currency_id",
        upsert_columns=("currency_id", "code", "name", "rate"),
        extractor=extract_currencies,
        owned_tables=("currencies",),
    ),
    EntityKind.CATEGORY: EntitySchema(
        kind=EntityKind.CATEGORY,
        table="categories",
        container_path="categories/category",
        ddl=CATEGORIES_DDL,
        expected_columns=frozenset({"id", "category_id", "name", "parent_id"}),
        natural_key="category_id",
        upsert_columns=("category_id", "name", "parent_id"),
        extractor=extract_categories,
        owned_tables=("categories",),
    ),
    EntityKind.OFFER: EntitySchema(
        kind=EntityKind.OFFER,
        table="offers",
        container_path="offers/offer",
        ddl=OFFERS_DDL,
        expected_columns=frozenset({
            "id", "offer_id", "vendor_code", "available", "name", "price",
            "currency_id", "category_id", "picture", "description",
        }),
        natural_key="vendor_code",
        upsert_columns=(
            "offer_id", "vendor_code", "available", "name", "price",
            "currency_id", "category_id", "picture", "description",
        ),
        extractor=extract_offers,
        owned_tables=("offers", ATTRIBUTES_TABLE),
        has_attributes=True,
    ),
}


def resolve_entity_kind(value: str | EntityKind) -> EntityKind:
    """
    Acepta el valor del tipo ("offer") o el nombre de su tabla ("offers"),
    sin distinguir mayusculas.

    Raises:
        UnknownKindError: si no corresponde a ningun tipo registrado
    """
    if isinstance(value, EntityKind):
        return value
    key = (value or "").strip().lower()
    for kind, schema in ENTITY_SCHEMAS.items():
        if key in (kind.value, schema.table):
            return kind
    raise UnknownKindError(value, [k.value for k in ENTITY_SCHEMAS])


def get_entity_schema(value: str | EntityKind) -> EntitySchema:
    return ENTITY_SCHEMAS[resolve_entity_kind(value)]
