"""Data models for the JSON relational converter."""

from .pattern import Pattern
from .table import Table, Row
from .table_set import TableSet
from .options import ConverterOptions

__all__ = ["Pattern", "Table", "Row", "TableSet", "ConverterOptions"]
