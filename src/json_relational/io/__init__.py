"""File I/O operations for converted tables."""

from .table_writer import TableWriter

__all__ = ["TableWriter"]
