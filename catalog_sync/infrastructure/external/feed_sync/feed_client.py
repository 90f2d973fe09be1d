"""
Lector del feed XML del proveedor.

Requisitos cubiertos:
- requests (un solo intento, sin reintentos: la politica de reintento es del caller)
- parser lxml endurecido: sin expansion de entidades, sin red
- DOCTYPE tolerado; DTDs conocidos (shops.dtd) se resuelven a documento vacio,
  cualquier otro DTD externo se rechaza sin leerlo
- normalizacion del elemento contenedor opcional (<yml_catalog><shop>...)
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence

import requests
from loguru import logger
from lxml import etree

from catalog_sync.shared.exceptions.sync import FetchError, ParseError

from .types import FeedNode

DEFAULT_IGNORABLE_DTDS: tuple[str, ...] = ("shops.dtd",)

# Contenedores de seccion: si el unico hijo del root es uno de estos,
# no es un envoltorio y no se desciende.
SECTION_TAGS = frozenset({"currencies", "categories", "offers"})


# Cuerpo de reemplazo para cualquier DTD externo: nunca se lee de disco ni de red
_EMPTY_DTD = "<!-- DTD externo omitido -->"


class _IgnorableDtdResolver(etree.Resolver):
    """
    Intercepta toda carga de DTD externo.

    Los DTDs conocidos (por sufijo) se resuelven a un documento vacio; el
    resto tambien se sustituye, pero queda registrado en `refused` para que
    el caller rechace el documento.
    """

    def __init__(self, suffixes: Iterable[str]) -> None:
        super().__init__()
        self._suffixes = tuple(suffixes)
        self.resolved: list[str] = []
        self.refused: list[str] = []

    def resolve(self, system_url, public_id, context):
        url = system_url or public_id or ""
        if url and self._suffixes and url.endswith(self._suffixes):
            logger.debug(f"DTD externo ignorado: {url}")
            self.resolved.append(url)
        else:
            self.refused.append(url)
        return self.resolve_string(_EMPTY_DTD, context)


def build_parser(resolver: etree.Resolver) -> etree.XMLParser:
    """
    Parser lxml endurecido contra billion-laughs y SSRF via DTD.

    load_dtd=True solo para que el DTD externo pase por `resolver`;
    las entidades nunca se expanden y la red queda deshabilitada.
    """
    parser = etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=True,
        dtd_validation=False,
        huge_tree=False,
    )
    parser.resolvers.add(resolver)
    return parser


def normalize_root(root: FeedNode) -> FeedNode:
    """
    Desciende un nivel si el root solo envuelve un contenedor.

    Asi <yml_catalog><shop>...</shop></yml_catalog> y <shop>...</shop>
    se consultan igual.
    """
    children = root.children()
    if len(children) == 1:
        only = children[0]
        if only.has_children() and only.tag not in SECTION_TAGS:
            return only
    return root


def parse_feed(
    content: bytes,
    *,
    ignorable_dtds: Sequence[str] = DEFAULT_IGNORABLE_DTDS,
    source: Optional[str] = None,
) -> FeedNode:
    """
    Parsea el documento y retorna el root ya normalizado.

    Raises:
        ParseError: si el XML esta mal formado o vacio, o si el DOCTYPE
            apunta a un DTD externo que no esta en `ignorable_dtds`
    """
    if not content or not content.strip():
        raise ParseError("documento vacio", source)
    resolver = _IgnorableDtdResolver(ignorable_dtds)
    try:
        element = etree.fromstring(content, build_parser(resolver))
    except etree.XMLSyntaxError as e:
        raise ParseError(str(e), source) from e
    if resolver.refused:
        raise ParseError(f"DTD externo no permitido: {', '.join(resolver.refused)}", source)
    if element is None:
        raise ParseError("documento vacio", source)
    return normalize_root(FeedNode(element))


def discover_sections(root: FeedNode) -> list[str]:
    """Nombres de los contenedores de primer nivel que tienen hijos, en orden."""
    names: list[str] = []
    for child in root.children():
        if child.has_children() and child.tag not in names:
            names.append(child.tag)
    return names


class FeedClient:
    """
    Cliente HTTP del feed. Un solo intento por llamada a fetch().
    """

    def __init__(
        self,
        url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: float = 60.0,
        ignorable_dtds: Sequence[str] = DEFAULT_IGNORABLE_DTDS,
    ) -> None:
        self._url = url
        self._timeout_s = timeout_s
        self._ignorable_dtds = tuple(ignorable_dtds)
        self._session = session or requests.Session()

    @property
    def source(self) -> str:
        return self._url

    def fetch(self) -> FeedNode:
        """
        Descarga y parsea el feed.

        Raises:
            FetchError: error de red/transporte o status no 2xx
            ParseError: XML mal formado
        """
        headers = {"Accept": "application/xml, text/xml;q=0.9, */*;q=0.8"}
        try:
            resp = self._session.get(self._url, headers=headers, timeout=self._timeout_s)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(self._url, str(e)) from e

        logger.info(f"Feed descargado: {self._url} ({len(resp.content)} bytes)")
        return parse_feed(resp.content, ignorable_dtds=self._ignorable_dtds, source=self._url)


class LocalFeedClient:
    """Lee el feed desde un archivo local (misma interfaz que FeedClient)."""

    def __init__(self, path: str | Path, *, ignorable_dtds: Sequence[str] = DEFAULT_IGNORABLE_DTDS) -> None:
        self._path = Path(path)
        self._ignorable_dtds = tuple(ignorable_dtds)

    @property
    def source(self) -> str:
        return str(self._path)

    def fetch(self) -> FeedNode:
        try:
            content = self._path.read_bytes()
        except OSError as e:
            raise FetchError(str(self._path), str(e)) from e
        return parse_feed(content, ignorable_dtds=self._ignorable_dtds, source=str(self._path))
