"""
CLI: feed XML de catalogo -> Postgres (one-way sync).

Uso recomendado:
  - Ejecutar `catalog-sync sync` como job (cron/systemd timer).
  - `catalog-sync menu` abre el menu numerado interactivo.

Variables de entorno (ver catalog_sync.core.config.Settings):
  - FEED_URL
  - DB_URL, DB_USER, DB_PASSWORD

Ejecucion:
  catalog-sync kinds
  catalog-sync ddl offers
  catalog-sync sync
  catalog-sync sync categories --feed-file export.xml
  catalog-sync columns currencies
  catalog-sync is-unique offers vendor_code
  catalog-sync diff categories
  catalog-sync menu
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable, Optional, Sequence

import psycopg
from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from catalog_sync.application.use_cases.catalog_use_cases import CatalogSyncUseCases
from catalog_sync.core.config import load_settings
from catalog_sync.core.events import shutdown, startup
from catalog_sync.shared.exceptions.base import AppException

MENU = """
=== XML to Database Sync ===
1. Show table names
2. Show table DDL
3. Update all tables
4. Update specific table
5. Show column names
6. Check if column is ID
7. Show DDL changes
0. Exit"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-sync",
        description="Sincroniza un feed XML de catalogo hacia PostgreSQL.",
    )
    parser.add_argument("--env-file", default=".env", help="Archivo .env a cargar (no pisa el entorno).")
    parser.add_argument("--feed-file", default=None, help="Lee el feed desde un archivo local en vez de FEED_URL.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("kinds", help="Lista los tipos de entidad soportados.")
    sub.add_parser("sections", help="Lista los contenedores presentes en el feed.")

    ddl = sub.add_parser("ddl", help="Imprime el DDL de un tipo.")
    ddl.add_argument("kind")

    sync = sub.add_parser("sync", help="Sincroniza todos los tipos o uno solo.")
    sync.add_argument("kind", nargs="?", default=None)

    columns = sub.add_parser("columns", help="Columnas actuales de una tabla.")
    columns.add_argument("table")

    unique = sub.add_parser("is-unique", help="Indica si la columna forma parte de un indice unico.")
    unique.add_argument("table")
    unique.add_argument("column")

    diff = sub.add_parser("diff", help="ALTER necesario para alinear la tabla con el esquema esperado.")
    diff.add_argument("kind")

    sub.add_parser("menu", help="Menu numerado interactivo.")
    return parser


def run_command(args: argparse.Namespace, use_cases: CatalogSyncUseCases) -> int:
    if args.command == "kinds":
        for kind, table in zip(use_cases.list_entity_kinds(), use_cases.list_tables()):
            print(f"{kind}\t{table}")
    elif args.command == "sections":
        print("Sections: " + ", ".join(use_cases.list_feed_sections()))
    elif args.command == "ddl":
        print(use_cases.table_ddl(args.kind))
    elif args.command == "sync":
        results = [use_cases.sync_one(args.kind)] if args.kind else use_cases.sync_all()
        for result in results:
            print(result.summary())
    elif args.command == "columns":
        print("Columns: " + ", ".join(use_cases.list_columns(args.table)))
    elif args.command == "is-unique":
        print(f"Is ID column: {use_cases.is_unique_index_member(args.table, args.column)}")
    elif args.command == "diff":
        print(use_cases.diff_ddl(args.kind))
    elif args.command == "menu":
        run_menu(use_cases)
    return 0


def run_menu(
    use_cases: CatalogSyncUseCases,
    *,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """
    Menu numerado sobre stdin/stdout. Los errores de cada opcion se
    informan y el menu continua; 0 o fin de entrada terminan el bucle.
    """
    while True:
        write(MENU)
        try:
            raw = read("Choose option: ")
        except EOFError:
            write("Goodbye!")
            return

        try:
            choice = int(raw.strip())
        except ValueError:
            write("Please enter a valid number")
            continue

        try:
            if choice == 0:
                write("Goodbye!")
                return
            elif choice == 1:
                write("Tables: " + ", ".join(use_cases.list_feed_sections()))
            elif choice == 2:
                write(use_cases.table_ddl(read("Enter table name: ")))
            elif choice == 3:
                for result in use_cases.sync_all():
                    write(result.summary())
                write("All tables updated successfully")
            elif choice == 4:
                write(use_cases.sync_one(read("Enter table name: ")).summary())
            elif choice == 5:
                write("Columns: " + ", ".join(use_cases.list_columns(read("Enter table name: "))))
            elif choice == 6:
                table = read("Enter table name: ")
                column = read("Enter column name: ")
                write(f"Is ID column: {use_cases.is_unique_index_member(table, column)}")
            elif choice == 7:
                write(use_cases.diff_ddl(read("Enter table name: ")))
            else:
                write("Invalid option")
        except AppException as e:
            write(f"Error: {e.message}")
        except psycopg.Error as e:
            write(f"Database error: {e}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file = Path(args.env_file)
    if env_file.is_file():
        load_dotenv(env_file, override=False)

    try:
        settings = load_settings()
    except ValidationError as e:
        print(f"Configuracion invalida: {e}")
        return 1

    startup(settings)
    try:
        use_cases = CatalogSyncUseCases(settings, feed_file=args.feed_file)
        return run_command(args, use_cases)
    except AppException as e:
        logger.error(f"[{e.error_code}] {e.message}")
        return 1
    except psycopg.Error as e:
        logger.error(f"Database error: {e}")
        return 1
    finally:
        shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
