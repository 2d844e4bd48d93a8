"""Service layer exports."""

from .postgres import PostgresPool

__all__ = ["PostgresPool"]
