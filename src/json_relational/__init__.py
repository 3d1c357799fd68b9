"""
json-relational - Convert nested JSON documents into related tables.

Table boundaries, columns and parent/child keys are inferred from the
brace and bracket nesting of the document alone.
"""

from .cancellation import CancellationToken
from .converter import JsonTableConverter
from .models import ConverterOptions, Pattern, Table, TableSet
from .types import ConversionResult, ConversionStatus

__version__ = "1.0.0"
__all__ = [
    "JsonTableConverter",
    "ConverterOptions",
    "CancellationToken",
    "Pattern",
    "Table",
    "TableSet",
    "ConversionResult",
    "ConversionStatus",
]
