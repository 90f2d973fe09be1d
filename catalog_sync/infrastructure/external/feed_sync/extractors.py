"""
Extractores por tipo de entidad.

Cada extractor recorre el arbol del feed de forma tolerante:
- contenedor ausente, lista ausente o hijos que no son elementos -> secuencia vacia
- campo ausente -> "" (nunca None, nunca excepcion)
- valor mal formado -> valor por defecto del campo (ExtractionError se absorbe aqui)
- clave natural ausente o invalida -> el registro se descarta

Los extractores son generators: producen registros a medida que se
consumen y registran al final cuantos se emitieron y cuantos se omitieron.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterator, Optional, TypeVar

from loguru import logger

from catalog_sync.domain.entities.catalog_records import (
    AttributeRecord,
    CategoryRecord,
    CurrencyRecord,
    OfferRecord,
)
from catalog_sync.shared.constants.entity_constants import CategoryNameSource
from catalog_sync.shared.exceptions.domain import ExtractionError

from .types import FeedNode, parse_decimal, parse_int

T = TypeVar("T")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ExtractionOptions:
    """Opciones de extraccion que dependen del formato del proveedor."""

    category_name_source: CategoryNameSource = CategoryNameSource.TEXT


def attr_value(node: FeedNode, name: str) -> str:
    """Valor del atributo @name, o "" si no existe."""
    return (node.attr(name) or "").strip()


def child_text(node: FeedNode, name: str) -> str:
    """Texto del primer hijo <name>, o "" si no existe."""
    child = node.child(name)
    if child is None:
        return ""
    return child.text().strip()


def _or_default(parser: Callable[[str, str], T], raw: str, field: str, default: T) -> T:
    try:
        return parser(raw, field)
    except ExtractionError as e:
        if raw:
            logger.debug(f"{e.message}; se usa {default!r}")
        return default


@dataclass
class ExtractionStats:
    """Contadores de una pasada de extraccion; el caller puede leerlos al terminar."""

    kind: str
    emitted: int = 0
    skipped: int = 0

    def skip(self, reason: str) -> None:
        self.skipped += 1
        logger.debug(f"Omitiendo {self.kind}: {reason}")

    def report(self) -> None:
        logger.info(f"{self.kind}: {self.emitted} registros extraidos, {self.skipped} omitidos")


def extract_currencies(
    root: FeedNode,
    path: str = "currencies/currency",
    options: Optional[ExtractionOptions] = None,
    stats: Optional[ExtractionStats] = None,
) -> Iterator[CurrencyRecord]:
    counter = stats or ExtractionStats("currency")
    for node in root.find_all(path):
        currency_id = attr_value(node, "id")
        if not currency_id:
            counter.skip("sin id")
            continue

        code = attr_value(node, "code") or currency_id
        name = child_text(node, "name") or attr_value(node, "name")
        rate = _or_default(parse_decimal, attr_value(node, "rate"), "rate", ZERO)

        counter.emitted += 1
        yield CurrencyRecord(currency_id=currency_id, code=code, name=name, rate=rate)
    counter.report()


def extract_categories(
    root: FeedNode,
    path: str = "categories/category",
    options: Optional[ExtractionOptions] = None,
    stats: Optional[ExtractionStats] = None,
) -> Iterator[CategoryRecord]:
    """
    El id es la PK de la tabla: si falta o no es entero, la categoria
    se descarta (no se usa un valor por defecto).
    """
    options = options or ExtractionOptions()
    counter = stats or ExtractionStats("category")
    for node in root.find_all(path):
        raw_id = attr_value(node, "id")
        if not raw_id:
            counter.skip("sin id")
            continue
        try:
            category_id = parse_int(raw_id, "id")
        except ExtractionError:
            counter.skip(f"id invalido {raw_id!r}")
            continue

        parent_id = _or_default(parse_int, attr_value(node, "parentId"), "parentId", None)

        counter.emitted += 1
        yield CategoryRecord(
            category_id=category_id,
            name=_category_name(node, options.category_name_source),
            parent_id=parent_id,
        )
    counter.report()


def _category_name(node: FeedNode, source: CategoryNameSource) -> str:
    if source == CategoryNameSource.CHILD:
        name = child_text(node, "name")
        if name:
            return name
    return node.text().strip()


def extract_params(offer: FeedNode) -> tuple[AttributeRecord, ...]:
    """Parametros <param name="..."> de una oferta; sin <param> -> tupla vacia."""
    return tuple(
        AttributeRecord(param_name=attr_value(param, "name"), param_value=param.text().strip())
        for param in offer.children("param")
    )


def extract_offers(
    root: FeedNode,
    path: str = "offers/offer",
    options: Optional[ExtractionOptions] = None,
    stats: Optional[ExtractionStats] = None,
) -> Iterator[OfferRecord]:
    counter = stats or ExtractionStats("offer")
    for node in root.find_all(path):
        vendor_code = child_text(node, "vendorCode")
        if not vendor_code:
            counter.skip(f"sin vendorCode (id={attr_value(node, 'id')!r})")
            continue

        counter.emitted += 1
        yield OfferRecord(
            vendor_code=vendor_code,
            offer_id=attr_value(node, "id") or None,
            available=attr_value(node, "available").lower() == "true",
            name=child_text(node, "name"),
            price=_or_default(parse_decimal, child_text(node, "price"), "price", ZERO),
            currency_id=child_text(node, "currencyId"),
            category_id=_or_default(parse_int, child_text(node, "categoryId"), "categoryId", 0),
            picture=child_text(node, "picture"),
            description=child_text(node, "description"),
            attributes=extract_params(node),
        )
    counter.report()
