"""
Servicio de sincronizacion feed XML -> Postgres.

Diseno (resumen), por cada tipo de entidad:
- Descarga y parsea el feed (un fallo aqui no toca la base)
- Abre una conexion (autocommit off) y, opcionalmente, un advisory lock
- Asegura las tablas del tipo via SchemaCatalog
- Extrae registros y ejecuta UPSERT en lotes por clave natural
- Offers: reemplaza atributos (delete en lote, luego insert en lote)
- Commit; ante cualquier error, rollback completo y SyncError

Estrategia de idempotencia:
- UPSERT last-write-wins sobre la clave natural
- Atributos reemplazados completos, nunca mezclados
- Re-ejecutar con el mismo feed deja las tablas iguales (salvo ids SERIAL)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from loguru import logger

from catalog_sync.core.config import Settings
from catalog_sync.shared.constants.entity_constants import (
    SYNC_ORDER,
    CategoryNameSource,
    EntityKind,
)
from catalog_sync.shared.exceptions.sync import ConfigError, FetchError, ParseError, SyncError

from .extractors import ExtractionOptions, ExtractionStats
from .feed_client import FeedClient, LocalFeedClient
from .pg_repository import PostgresCatalogRepository, stable_lock_key
from .schema_catalog import SchemaCatalog
from .table_mappings import EntitySchema, get_entity_schema
from .types import FeedNode

LOCK_NAMESPACE = "catalog_sync"


class FeedSource(Protocol):
    @property
    def source(self) -> str: ...

    def fetch(self) -> FeedNode: ...


@dataclass(frozen=True)
class SyncResult:
    kind: EntityKind
    table: str
    upserted: int
    skipped: int = 0
    attributes_replaced: int = 0
    tables_created: bool = False

    def summary(self) -> str:
        text = f"Tabla {self.table} actualizada correctamente: {self.upserted} filas"
        if self.skipped:
            text += f", {self.skipped} omitidos"
        if self.attributes_replaced:
            text += f", {self.attributes_replaced} atributos"
        return text


def _dedupe_by_key(records: list[Any], key: str) -> list[Any]:
    """
    Una fila por clave natural; ante duplicados gana la ultima aparicion
    del feed (igual que aplicar los UPSERT en orden).
    """
    by_key: dict[Any, Any] = {}
    for record in records:
        by_key[record.to_row()[key]] = record
    return list(by_key.values())


class CatalogSynchronizer:
    """
    Orquestador del pipeline para los tipos del catalogo.
    """

    def __init__(
        self,
        *,
        pg_repo: PostgresCatalogRepository,
        feed: FeedSource,
        schema_catalog: Optional[SchemaCatalog] = None,
        upsert_batch_size: int = 500,
        advisory_lock: bool = True,
        extraction_options: Optional[ExtractionOptions] = None,
    ) -> None:
        self._pg = pg_repo
        self._feed = feed
        self._catalog = schema_catalog or SchemaCatalog(pg_repo)
        self._upsert_batch_size = upsert_batch_size
        self._advisory_lock = advisory_lock
        self._options = extraction_options or ExtractionOptions()

    def sync_all(self) -> list[SyncResult]:
        """
        Sincroniza todos los tipos en orden fijo (monedas, categorias, ofertas).

        Un fallo en el tipo N deja confirmados los tipos anteriores y no
        intenta los siguientes.
        """
        return [self.sync_one(kind) for kind in SYNC_ORDER]

    def sync_one(self, kind: str | EntityKind) -> SyncResult:
        """
        Sincroniza un tipo en una unica transaccion todo-o-nada.

        Raises:
            UnknownKindError: si el tipo no existe
            SyncError: ante cualquier fallo de feed o de base (con rollback)
        """
        schema = get_entity_schema(kind)
        name = schema.kind.value

        try:
            root = self._feed.fetch()
        except (FetchError, ParseError) as e:
            logger.error(f"Sync de '{name}' abortado antes de tocar la base: {e.message}")
            raise SyncError(name, e.message) from e

        try:
            conn = self._pg.connect()
        except Exception as e:
            logger.error(f"Sync de '{name}' abortado: no se pudo conectar a la base: {e}")
            raise SyncError(name, f"no se pudo conectar a la base: {e}") from e

        with conn:
            try:
                result = self._run_in_transaction(conn, schema, root)
                conn.commit()
            except SyncError as e:
                conn.rollback()
                logger.warning(f"Sync de '{name}' revertido: {e.message}")
                raise
            except Exception as e:
                conn.rollback()
                logger.exception(f"Sync de '{name}' revertido")
                raise SyncError(name, str(e)) from e

        logger.success(result.summary())
        return result

    def _run_in_transaction(self, conn, schema: EntitySchema, root: FeedNode) -> SyncResult:
        if self._advisory_lock:
            lock_key = stable_lock_key(LOCK_NAMESPACE, schema.table)
            if not self._pg.try_advisory_xact_lock(conn, lock_key):
                raise SyncError(schema.kind.value, "otro proceso ya esta sincronizando (advisory lock ocupado)")

        created = self._catalog.ensure_table(schema.kind, conn)

        logger.info(f"Sync: feed '{self._feed.source}' -> Postgres \"{schema.table}\"")
        stats = ExtractionStats(schema.kind.value)
        extracted = list(schema.extract(root, self._options, stats))
        records = _dedupe_by_key(extracted, schema.natural_key)
        if len(records) != len(extracted):
            logger.warning(
                f"{schema.table}: {len(extracted) - len(records)} duplicados por "
                f"{schema.natural_key}; se conserva la ultima aparicion"
            )

        upserted = self._pg.upsert_rows(
            conn,
            target_table=schema.table,
            rows=[r.to_row() for r in records],
            columns=schema.upsert_columns,
            conflict_key=schema.natural_key,
            batch_size=self._upsert_batch_size,
        )

        attributes = 0
        if schema.has_attributes:
            self._pg.delete_attributes(
                conn,
                vendor_codes=[r.vendor_code for r in records],
                batch_size=self._upsert_batch_size,
            )
            attributes = self._pg.insert_attributes(
                conn,
                rows=[row for r in records for row in r.attribute_rows()],
                batch_size=self._upsert_batch_size,
            )

        return SyncResult(
            kind=schema.kind,
            table=schema.table,
            upserted=upserted,
            skipped=stats.skipped,
            attributes_replaced=attributes,
            tables_created=created,
        )


def build_repository(settings: Settings) -> PostgresCatalogRepository:
    """Repositorio Postgres; no abre conexiones hasta el primer uso."""
    return PostgresCatalogRepository(
        settings.effective_database_url,
        user=settings.DB_USER,
        password=settings.DB_PASSWORD,
    )


def build_feed_source(settings: Settings, *, feed_file: Optional[str | Path] = None) -> FeedSource:
    """
    Origen del feed: archivo local si se indica, si no FEED_URL.

    Raises:
        ConfigError: si no hay archivo local ni FEED_URL
    """
    if feed_file:
        return LocalFeedClient(feed_file, ignorable_dtds=settings.ignorable_dtds)
    if not settings.FEED_URL.strip():
        raise ConfigError("FEED_URL vacio y sin --feed-file: no hay origen para el feed")
    return FeedClient(
        settings.FEED_URL,
        timeout_s=settings.FEED_TIMEOUT_S,
        ignorable_dtds=settings.ignorable_dtds,
    )


def build_from_settings(
    settings: Settings,
    *,
    feed_file: Optional[str | Path] = None,
    pg_repo: Optional[PostgresCatalogRepository] = None,
) -> tuple[CatalogSynchronizer, PostgresCatalogRepository, FeedSource]:
    """
    Constructor "oficial" del pipeline a partir de la configuracion del proceso.

    Raises:
        ConfigError: si no hay archivo local ni FEED_URL
    """
    feed = build_feed_source(settings, feed_file=feed_file)
    pg_repo = pg_repo or build_repository(settings)

    service = CatalogSynchronizer(
        pg_repo=pg_repo,
        feed=feed,
        upsert_batch_size=settings.UPSERT_BATCH_SIZE,
        advisory_lock=settings.SYNC_ADVISORY_LOCK,
        extraction_options=ExtractionOptions(
            category_name_source=CategoryNameSource(settings.CATEGORY_NAME_SOURCE),
        ),
    )
    return service, pg_repo, feed
