"""
Casos de uso del sincronizador de catalogo.

Superficie sincronica publica: listar tipos, DDL, sync total o por tipo,
y consultas de metadatos sobre el esquema vivo.
"""
from pathlib import Path
from typing import List, Optional

from loguru import logger

from catalog_sync.core.config import Settings
from catalog_sync.infrastructure.external.feed_sync.feed_client import discover_sections
from catalog_sync.infrastructure.external.feed_sync.metadata_inspector import MetadataInspector
from catalog_sync.infrastructure.external.feed_sync.schema_catalog import SchemaCatalog
from catalog_sync.infrastructure.external.feed_sync.sync_service import (
    CatalogSynchronizer,
    FeedSource,
    SyncResult,
    build_from_settings,
    build_repository,
)
from catalog_sync.infrastructure.external.feed_sync.table_mappings import ENTITY_SCHEMAS
from catalog_sync.shared.constants.entity_constants import SYNC_ORDER, EntityKind
from catalog_sync.shared.exceptions.base import AppException


class CatalogSyncUseCases:
    """
    Fachada sobre el pipeline feed -> Postgres.

    El repositorio se crea al construir la fachada; el origen del feed y el
    sincronizador recien cuando una operacion los necesita, asi DDL y
    metadatos funcionan aunque no haya FEED_URL.
    """

    def __init__(self, settings: Settings, feed_file: Optional[str | Path] = None):
        self.settings = settings
        self._feed_file = feed_file
        self.repository = build_repository(settings)
        self.schema_catalog = SchemaCatalog(self.repository)
        self.inspector = MetadataInspector(self.repository)
        self._synchronizer: Optional[CatalogSynchronizer] = None
        self._feed: Optional[FeedSource] = None

    def _build_pipeline(self) -> None:
        if self._synchronizer is None:
            self._synchronizer, _, self._feed = build_from_settings(
                self.settings, feed_file=self._feed_file, pg_repo=self.repository
            )

    @property
    def synchronizer(self) -> CatalogSynchronizer:
        self._build_pipeline()
        return self._synchronizer

    @property
    def feed(self) -> FeedSource:
        self._build_pipeline()
        return self._feed

    def list_entity_kinds(self) -> List[str]:
        """Tipos soportados, en orden de sincronizacion."""
        return [kind.value for kind in SYNC_ORDER]

    def list_tables(self) -> List[str]:
        return [ENTITY_SCHEMAS[kind].table for kind in SYNC_ORDER]

    def list_feed_sections(self) -> List[str]:
        """
        Contenedores presentes en el feed actual.

        Si el feed no se puede leer o no tiene secciones, retorna las
        tablas por defecto.
        """
        try:
            sections = discover_sections(self.feed.fetch())
        except AppException as e:
            logger.warning(f"No se pudo leer el feed para listar secciones, se usa la lista por defecto: {e.message}")
            return self.list_tables()
        return sections or self.list_tables()

    def table_ddl(self, kind: str | EntityKind) -> str:
        return self.schema_catalog.ddl(kind)

    def sync_all(self) -> List[SyncResult]:
        return self.synchronizer.sync_all()

    def sync_one(self, kind: str | EntityKind) -> SyncResult:
        return self.synchronizer.sync_one(kind)

    def list_columns(self, table: str) -> List[str]:
        return sorted(self.inspector.columns(table))

    def is_unique_index_member(self, table: str, column: str) -> bool:
        return self.inspector.is_unique_index_member(table, column)

    def diff_ddl(self, kind: str | EntityKind) -> str:
        return self.inspector.diff_ddl(kind)
