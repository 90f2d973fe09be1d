"""
Tipos y utilidades puras para el pipeline feed -> Postgres.

Se mantienen libres de I/O para poder testearlos facilmente.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Iterator, Mapping, Optional

from lxml import etree

from catalog_sync.shared.exceptions.domain import ExtractionError

# Rango de la columna INTEGER de Postgres
_PG_INT_MIN = -(2**31)
_PG_INT_MAX = 2**31 - 1
_INT_PATTERN = re.compile(r"^[+-]?[0-9]+$")
# Solo digitos ASCII: se rechazan "_", NaN, Infinity y digitos Unicode
_DECIMAL_PATTERN = re.compile(r"^[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$")


def _local_name(element) -> str:
    """Nombre del tag sin namespace."""
    return etree.QName(element).localname


def _is_element(node) -> bool:
    # Comentarios, PIs y entidades sin resolver tienen tag no-string
    return isinstance(node.tag, str)


class FeedNode:
    """
    Nodo de solo lectura del arbol del feed.

    La ausencia y la multiplicidad son explicitas:
    - child(name)    -> FeedNode | None
    - children(name) -> list[FeedNode]
    - attr(name)     -> str | None
    - text()         -> str (nunca None)

    Los hijos que no son elementos nunca se exponen.
    """

    __slots__ = ("_element",)

    def __init__(self, element) -> None:
        self._element = element

    @property
    def tag(self) -> str:
        return _local_name(self._element)

    @property
    def attributes(self) -> Mapping[str, str]:
        return dict(self._element.attrib)

    def attr(self, name: str) -> Optional[str]:
        return self._element.get(name)

    def children(self, name: Optional[str] = None) -> list[FeedNode]:
        return [
            FeedNode(child)
            for child in self._element
            if _is_element(child) and (name is None or _local_name(child) == name)
        ]

    def child(self, name: str) -> Optional[FeedNode]:
        for node in self.children(name):
            return node
        return None

    def has_children(self) -> bool:
        return any(_is_element(child) for child in self._element)

    def text(self) -> str:
        """Texto concatenado del subarbol (incluye descendientes)."""
        return "".join(_iter_text(self._element))

    def find_all(self, path: str) -> list[FeedNode]:
        """
        Resuelve una ruta simple de tags separada por '/' (p.ej. "offers/offer").

        Cada tramo ausente produce una lista vacia, nunca un error.
        """
        nodes = [self]
        for segment in (s for s in path.split("/") if s):
            nodes = [c for node in nodes for c in node.children(segment)]
            if not nodes:
                return []
        return nodes

    def __repr__(self) -> str:
        return f"FeedNode(tag={self.tag!r}, attributes={self.attributes!r})"


def _iter_text(element) -> Iterator[str]:
    if element.text:
        yield element.text
    for child in element:
        if _is_element(child):
            yield from _iter_text(child)
        if child.tail:
            yield child.tail


def parse_decimal(raw: Optional[str], field: str) -> Decimal:
    """
    Parsea un decimal tolerando coma o punto como separador.

    Levanta ExtractionError si el valor esta vacio, no es un literal
    decimal ASCII (p.ej. "1_000", "NaN") o es negativo.
    """
    clean = (raw or "").strip().replace(",", ".")
    if not _DECIMAL_PATTERN.match(clean):
        raise ExtractionError(field, raw or "")
    try:
        value = Decimal(clean)
    except InvalidOperation as e:
        raise ExtractionError(field, raw or "") from e
    if value < 0:
        raise ExtractionError(field, raw or "")
    return value


def parse_int(raw: Optional[str], field: str) -> int:
    """Parsea un entero que cabe en una columna INTEGER."""
    clean = (raw or "").strip()
    if not _INT_PATTERN.match(clean):
        raise ExtractionError(field, raw or "")
    value = int(clean)
    if not _PG_INT_MIN <= value <= _PG_INT_MAX:
        raise ExtractionError(field, raw or "")
    return value
