"""Table and column naming helpers."""

import re
import unicodedata
from typing import Tuple

TABLE_SUFFIX_RE = re.compile(r"^(.+)(\{\[(\d+)\]\})$")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]+")


def indexed_table_name(node_name: str, index: int) -> str:
    """Build the per-pattern table name ``<node>{[<index>]}``."""
    return f"{node_name}{{[{index}]}}"


def root_name(table_name: str) -> str:
    """Strip the ``{[n]}`` disambiguating suffix from a table name."""
    match = TABLE_SUFFIX_RE.match(table_name)
    return match.group(1) if match else table_name


def natural_table_key(table_name: str) -> Tuple[str, int, str]:
    """Sort key ordering ``x{[2]}`` before ``x{[10]}``."""
    match = TABLE_SUFFIX_RE.match(table_name)
    if match:
        return (match.group(1), int(match.group(3)), "")
    return (table_name, -1, table_name)


def strip_diacritics(text: str) -> str:
    """Remove combining marks, e.g. ``Réseau`` -> ``Reseau``."""
    decomposed = unicodedata.normalize("NFD", text)
    kept = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return unicodedata.normalize("NFC", kept)


def sanitize_name(name: str, replacement: str = "_") -> str:
    """
    Make a name safe for SQL-like consumers.

    Diacritics are stripped and every run of non-alphanumeric characters
    collapses to ``replacement``. Applying it twice yields the same result.

    Args:
        name: Table or column name
        replacement: Text substituted for each non-alphanumeric run

    Returns:
        Sanitized name
    """
    return _NON_ALNUM_RE.sub(replacement, strip_diacritics(name))
