"""Sincronizacion de un feed XML de catalogo hacia PostgreSQL."""
__version__ = "1.0.0"
