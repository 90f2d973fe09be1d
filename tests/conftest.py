"""
Configuracion de fixtures para pytest.

Incluye un repositorio en memoria con la misma interfaz que
PostgresCatalogRepository (transacciones con snapshot/rollback) para
probar la orquestacion del sync sin un Postgres real.
"""
from __future__ import annotations

import copy
import re
from typing import Any, Iterable, Optional, Sequence

import pytest

from catalog_sync.infrastructure.external.feed_sync.feed_client import parse_feed
from catalog_sync.shared.exceptions.sync import FetchError


WRAPPED_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE yml_catalog SYSTEM "shops.dtd">
<yml_catalog date="2024-01-01 10:00">
  <shop>
    <name>Demo Shop</name>
    <currencies>
      <currency id="RUR" rate="1"/>
      <currency id="USD" code="USD" rate="90,5"><name>Dollar</name></currency>
      <currency code="GBP" rate="110"/>
      <currency id="EUR" rate="abc" name="Euro"/>
    </currencies>
    <categories>
      <category id="1">Tools</category>
      <category id="2" parentId="1">Drills</category>
      <category id="x">Broken id</category>
      <category>No id</category>
      <category id="3" parentId="zz">Orphan</category>
    </categories>
    <offers>
      <offer id="101" available="true">
        <vendorCode>VC-1</vendorCode>
        <name>Drill</name>
        <price>1234,50</price>
        <currencyId>RUR</currencyId>
        <categoryId>2</categoryId>
        <picture>http://img.example/1.jpg</picture>
        <description>Cordless drill</description>
        <param name="Color">Red</param>
        <param name="Weight">2 kg</param>
        <param name="Power">500 W</param>
      </offer>
      <offer id="102" available="FALSE">
        <vendorCode>VC-2</vendorCode>
        <name>Saw</name>
        <price>oops</price>
        <categoryId>n/a</categoryId>
      </offer>
      <offer id="103" available="true">
        <name>No vendor code</name>
        <price>10</price>
      </offer>
    </offers>
  </shop>
</yml_catalog>
"""

UNWRAPPED_FEED = WRAPPED_FEED.replace(
    b'<yml_catalog date="2024-01-01 10:00">', b""
).replace(b"</yml_catalog>", b"").replace(
    b'<!DOCTYPE yml_catalog SYSTEM "shops.dtd">', b""
)

# Misma oferta VC-1 con la lista de parametros reducida a uno
SHRUNK_PARAMS_FEED = re.sub(
    rb'<param name="Weight">2 kg</param>\s*<param name="Power">500 W</param>',
    b"",
    WRAPPED_FEED,
)


class FakeFeed:
    """Fuente de feed en memoria; el contenido se puede cambiar entre syncs."""

    def __init__(self, content: bytes = WRAPPED_FEED, error: Optional[Exception] = None) -> None:
        self.content = content
        self.error = error
        self.fetch_count = 0

    @property
    def source(self) -> str:
        return "memory://feed.xml"

    def fetch(self):
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        return parse_feed(self.content, source=self.source)


class _FakeConn:
    def __init__(self, repo: "InMemoryCatalogRepository") -> None:
        self._repo = repo
        self._snapshot = repo._state()
        self.closed = False

    def commit(self) -> None:
        self._snapshot = self._repo._state()
        self._repo.commits += 1

    def rollback(self) -> None:
        self._repo._restore(self._snapshot)
        self._repo.rollbacks += 1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.rollback()
        self.closed = True
        return False


class InMemoryCatalogRepository:
    """Imita la semantica de PostgresCatalogRepository sobre dicts."""

    def __init__(self) -> None:
        self.created: set[str] = set()
        self.tables: dict[str, dict[Any, dict[str, Any]]] = {}
        self.attributes: list[dict[str, Any]] = []
        self.lock_available = True
        self.fail_on_attribute_insert = False
        self.fail_on_upsert_table: Optional[str] = None
        self.connect_count = 0
        self.commits = 0
        self.rollbacks = 0
        self.ddl_executed: list[str] = []

    def _state(self):
        return copy.deepcopy((self.created, self.tables, self.attributes))

    def _restore(self, state) -> None:
        self.created, self.tables, self.attributes = copy.deepcopy(state)

    def connect(self) -> _FakeConn:
        self.connect_count += 1
        return _FakeConn(self)

    def try_advisory_xact_lock(self, conn, lock_key: int) -> bool:
        return self.lock_available

    def table_exists(self, conn, table: str) -> bool:
        return table in self.created

    def execute_ddl(self, conn, ddl: str) -> None:
        self.ddl_executed.append(ddl)
        for name in re.findall(r"CREATE TABLE IF NOT EXISTS (\w+)", ddl):
            self.created.add(name)
            if name != "offer_attributes":
                self.tables.setdefault(name, {})

    def upsert_rows(
        self,
        conn,
        *,
        target_table: str,
        rows: Iterable[dict[str, Any]],
        columns: Sequence[str],
        conflict_key: str,
        batch_size: int = 500,
    ) -> int:
        if self.fail_on_upsert_table == target_table:
            raise RuntimeError(f"upsert failed on {target_table}")
        table = self.tables[target_table]
        count = 0
        for row in rows:
            table[row[conflict_key]] = {c: row[c] for c in columns}
            count += 1
        return count

    def delete_attributes(self, conn, *, vendor_codes: Iterable[str], batch_size: int = 500) -> int:
        codes = list(vendor_codes)
        self.attributes = [a for a in self.attributes if a["offer_vendor_code"] not in set(codes)]
        return len(codes)

    def insert_attributes(self, conn, *, rows: Iterable[dict[str, Any]], batch_size: int = 500) -> int:
        if self.fail_on_attribute_insert:
            raise RuntimeError("attribute insert failed")
        rows = list(rows)
        for row in rows:
            if row["offer_vendor_code"] not in self.tables["offers"]:
                raise RuntimeError("foreign key violation")
            self.attributes.append(dict(row))
        return len(rows)

    def attributes_for(self, vendor_code: str) -> list[tuple[str, str]]:
        return [
            (a["param_name"], a["param_value"])
            for a in self.attributes
            if a["offer_vendor_code"] == vendor_code
        ]


@pytest.fixture
def feed_root():
    return parse_feed(WRAPPED_FEED)


@pytest.fixture
def fake_feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def failing_feed() -> FakeFeed:
    return FakeFeed(error=FetchError("memory://feed.xml", "connection refused"))


@pytest.fixture
def memory_repo() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository()


@pytest.fixture
def wrapped_feed() -> bytes:
    return WRAPPED_FEED


@pytest.fixture
def unwrapped_feed() -> bytes:
    return UNWRAPPED_FEED


@pytest.fixture
def shrunk_params_feed() -> bytes:
    return SHRUNK_PARAMS_FEED


@pytest.fixture
def make_feed():
    """Fabrica de FakeFeed para tests que necesitan otro contenido."""
    return FakeFeed
