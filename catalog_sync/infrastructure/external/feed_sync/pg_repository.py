"""
Repositorio Postgres (psycopg) para:
- existencia de tablas y ejecucion de DDL
- UPSERT por clave natural, en lotes
- reemplazo de la tabla lateral de atributos (delete + insert)
- metadatos del catalogo (columnas, indices unicos)
- advisory lock opcional por transaccion

Todas las escrituras ocurren dentro de la transaccion del caller: este
repositorio nunca hace commit ni rollback.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

import psycopg
from psycopg.rows import dict_row

from .table_mappings import ATTRIBUTE_COLUMNS, ATTRIBUTES_TABLE


def stable_lock_key(namespace: str, table_name: str) -> int:
    """
    Genera un lock key reproducible para pg_advisory_lock.
    """
    # hash() no es estable entre procesos; suma simple de bytes.
    raw = (namespace + ":" + table_name).encode("utf-8")
    return int(sum(raw) % (2**31 - 1))


def build_upsert_sql(table: str, columns: Sequence[str], conflict_key: str) -> str:
    """
    INSERT ... ON CONFLICT (<clave natural>) DO UPDATE SET <resto> = EXCLUDED.<resto>.

    Last-write-wins: toda columna distinta de la clave se sobreescribe.
    """
    if conflict_key not in columns:
        raise ValueError(f"Falta clave '{conflict_key}' en columnas para UPSERT")

    quoted_cols = ", ".join(f'"{c}"' for c in columns)
    placeholders = ", ".join(["%s"] * len(columns))
    set_sql = ", ".join(f'"{c}" = EXCLUDED."{c}"' for c in columns if c != conflict_key)

    return (
        f'INSERT INTO "{table}" ({quoted_cols}) '
        f"VALUES ({placeholders}) "
        f'ON CONFLICT ("{conflict_key}") DO UPDATE SET {set_sql}'
    )


DELETE_ATTRIBUTES_SQL = f'DELETE FROM "{ATTRIBUTES_TABLE}" WHERE "offer_vendor_code" = %s'
INSERT_ATTRIBUTE_SQL = (
    f'INSERT INTO "{ATTRIBUTES_TABLE}" ({", ".join(ATTRIBUTE_COLUMNS)}) VALUES (%s, %s, %s)'
)


def _chunks(values: list, size: int) -> Iterable[list]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class PostgresCatalogRepository:
    def __init__(
        self,
        dsn: str,
        *,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self._dsn = dsn
        self._user = user
        self._password = password

    def connect(self) -> psycopg.Connection:
        """
        Abre conexion (autocommit False). El caller controla commits.
        """
        kwargs: dict[str, Any] = {}
        if self._user:
            kwargs["user"] = self._user
        if self._password:
            kwargs["password"] = self._password
        try:
            return psycopg.connect(self._dsn, row_factory=dict_row, autocommit=False, **kwargs)
        except psycopg.OperationalError as e:
            raise psycopg.OperationalError(
                f"{e}\n"
                f"Sugerencia: verifica que DB_URL ({self._dsn}) sea accesible desde donde ejecutas el proceso "
                f"y que DB_USER/DB_PASSWORD sean correctos."
            ) from e

    def try_advisory_xact_lock(self, conn: psycopg.Connection, lock_key: int) -> bool:
        """
        Evita ejecuciones simultaneas del mismo sync. Se libera solo al
        terminar la transaccion (commit o rollback).
        """
        with conn.cursor() as cur:
            cur.execute("SELECT pg_try_advisory_xact_lock(%s) AS locked", (lock_key,))
            row = cur.fetchone()
            return bool(row and row.get("locked"))

    def table_exists(self, conn: psycopg.Connection, table: str) -> bool:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT EXISTS (
                    SELECT 1
                    FROM information_schema.tables
                    WHERE table_schema = current_schema()
                      AND table_name = lower(%s)
                ) AS found
                """,
                (table,),
            )
            row = cur.fetchone()
            return bool(row and row.get("found"))

    def execute_ddl(self, conn: psycopg.Connection, ddl: str) -> None:
        # Sin parametros: psycopg admite varias sentencias en un solo execute
        with conn.cursor() as cur:
            cur.execute(ddl)

    def upsert_rows(
        self,
        conn: psycopg.Connection,
        *,
        target_table: str,
        rows: Iterable[dict[str, Any]],
        columns: Sequence[str],
        conflict_key: str,
        batch_size: int = 500,
    ) -> int:
        """
        UPSERT en lotes (executemany). Retorna la cantidad de filas enviadas.
        """
        rows_list = list(rows)
        if not rows_list:
            return 0

        sql = build_upsert_sql(target_table, columns, conflict_key)
        values = [tuple(row[c] for c in columns) for row in rows_list]

        with conn.cursor() as cur:
            for chunk in _chunks(values, batch_size):
                cur.executemany(sql, chunk)
        return len(values)

    def delete_attributes(
        self,
        conn: psycopg.Connection,
        *,
        vendor_codes: Iterable[str],
        batch_size: int = 500,
    ) -> int:
        params = [(code,) for code in vendor_codes]
        if not params:
            return 0
        with conn.cursor() as cur:
            for chunk in _chunks(params, batch_size):
                cur.executemany(DELETE_ATTRIBUTES_SQL, chunk)
        return len(params)

    def insert_attributes(
        self,
        conn: psycopg.Connection,
        *,
        rows: Iterable[dict[str, Any]],
        batch_size: int = 500,
    ) -> int:
        values = [tuple(row[c] for c in ATTRIBUTE_COLUMNS) for row in rows]
        if not values:
            return 0
        with conn.cursor() as cur:
            for chunk in _chunks(values, batch_size):
                cur.executemany(INSERT_ATTRIBUTE_SQL, chunk)
        return len(values)

    def fetch_columns(self, conn: psycopg.Connection, table: str) -> set[str]:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT column_name
                FROM information_schema.columns
                WHERE table_schema = current_schema()
                  AND table_name = lower(%s)
                """,
                (table,),
            )
            return {str(r["column_name"]).lower() for r in cur.fetchall()}

    def fetch_unique_index_columns(self, conn: psycopg.Connection, table: str) -> set[str]:
        """Columnas que participan en algun indice unico (incluye la PK)."""
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT a.attname AS column_name
                FROM pg_index i
                JOIN pg_class t ON t.oid = i.indrelid
                JOIN pg_namespace n ON n.oid = t.relnamespace
                JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(i.indkey)
                WHERE i.indisunique
                  AND n.nspname = current_schema()
                  AND t.relname = lower(%s)
                """,
                (table,),
            )
            return {str(r["column_name"]) for r in cur.fetchall()}
