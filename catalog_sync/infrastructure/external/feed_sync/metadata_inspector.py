"""
Inspector de metadatos del esquema vivo.

Solo lectura y sin cache: cada consulta abre su propia conexion y
refleja el estado actual de la base.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from catalog_sync.shared.constants.entity_constants import (
    NO_CHANGES_MARKER,
    OFFERS_DRIFT_MARKER,
    EntityKind,
)

from .table_mappings import get_entity_schema

if TYPE_CHECKING:
    from .pg_repository import PostgresCatalogRepository


def build_alter_statement(table: str, missing_columns: set[str] | frozenset[str]) -> str:
    """
    ALTER TABLE con un ADD COLUMN ... TEXT por columna faltante.

    Las columnas agregadas siempre son TEXT: no se infiere un tipo mas rico.
    """
    if not missing_columns:
        return NO_CHANGES_MARKER
    clauses = ",\n".join(f"    ADD COLUMN {col} TEXT" for col in sorted(missing_columns))
    return f"ALTER TABLE {table}\n{clauses};"


class MetadataInspector:
    def __init__(self, repo: "PostgresCatalogRepository") -> None:
        self._repo = repo

    def columns(self, table: str) -> set[str]:
        """Columnas de la tabla en minusculas (vacio si la tabla no existe)."""
        with self._repo.connect() as conn:
            return self._repo.fetch_columns(conn, table)

    def is_unique_index_member(self, table: str, column: str) -> bool:
        with self._repo.connect() as conn:
            indexed = self._repo.fetch_unique_index_columns(conn, table)
        target = column.strip().lower()
        return any(name.lower() == target for name in indexed)

    def diff_ddl(self, kind: str | EntityKind) -> str:
        """
        Drift entre columnas esperadas y vivas.

        Para offers nunca hace falta ALTER: los campos nuevos se absorben
        en la tabla offer_attributes.
        """
        schema = get_entity_schema(kind)
        if schema.has_attributes:
            return OFFERS_DRIFT_MARKER

        missing = set(schema.expected_columns) - self.columns(schema.table)
        return build_alter_statement(schema.table, missing)
