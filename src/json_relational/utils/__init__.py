"""Utility functions for the JSON relational converter."""

from .naming import indexed_table_name, root_name, sanitize_name, natural_table_key
from .partition import partition
from .quoting import mask_nested_spans, toggles_string, is_balanced_pair

__all__ = [
    "indexed_table_name",
    "root_name",
    "sanitize_name",
    "natural_table_key",
    "partition",
    "mask_nested_spans",
    "toggles_string",
    "is_balanced_pair",
]
