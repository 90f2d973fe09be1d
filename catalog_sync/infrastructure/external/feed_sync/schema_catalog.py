"""
Catalogo de esquema: DDL, columnas esperadas y creacion condicional de tablas.

La verificacion existe-luego-crea no esta protegida contra otro proceso
que cree la misma tabla en paralelo; el sincronizador la cubre con el
advisory lock cuando SYNC_ADVISORY_LOCK esta activo.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from catalog_sync.shared.constants.entity_constants import EntityKind

from .table_mappings import get_entity_schema

if TYPE_CHECKING:
    import psycopg

    from .pg_repository import PostgresCatalogRepository


class SchemaCatalog:
    def __init__(self, repo: "PostgresCatalogRepository") -> None:
        self._repo = repo

    def ddl(self, kind: str | EntityKind) -> str:
        return get_entity_schema(kind).ddl

    def expected_columns(self, kind: str | EntityKind) -> frozenset[str]:
        return get_entity_schema(kind).expected_columns

    def ensure_table(self, kind: str | EntityKind, conn: "psycopg.Connection") -> bool:
        """
        Ejecuta el DDL del tipo solo si falta alguna de sus tablas.

        Returns:
            True si se ejecuto el DDL.
        """
        schema = get_entity_schema(kind)
        missing = [t for t in schema.owned_tables if not self._repo.table_exists(conn, t)]
        if not missing:
            return False

        logger.info(f"Creando tablas faltantes para '{schema.kind.value}': {', '.join(missing)}")
        self._repo.execute_ddl(conn, schema.ddl)
        return True
