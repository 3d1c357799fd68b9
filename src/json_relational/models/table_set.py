"""Named collection of tables with an explicit name registry."""

from typing import Dict, Iterator, List, Optional

from ..types import DuplicateTableError
from .table import Table


class TableSet:
    """
    The deliverable of a conversion: uniquely named tables in insertion order.

    Tables are addressed through a name-to-index registry that is rebuilt
    whenever a table is removed or renamed; unknown names resolve to None
    instead of raising.
    """

    def __init__(self, name: str = "json"):
        self.name = name
        self._tables: List[Table] = []
        self._registry: Dict[str, int] = {}

    def __repr__(self) -> str:
        return f"TableSet({self.name!r}, tables={self.names()!r})"

    def __len__(self) -> int:
        return len(self._tables)

    def __iter__(self) -> Iterator[Table]:
        return iter(list(self._tables))

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def names(self) -> List[str]:
        """Table names in insertion order."""
        return [table.name for table in self._tables]

    def get(self, name: str) -> Optional[Table]:
        """Resolve a table by name, or None when it is not registered."""
        index = self._registry.get(name)
        return self._tables[index] if index is not None else None

    def add(self, table: Table) -> Table:
        """
        Register a table.

        Raises:
            DuplicateTableError: If the name is already taken
        """
        if table.name in self._registry:
            raise DuplicateTableError(table.name)
        self._registry[table.name] = len(self._tables)
        self._tables.append(table)
        return table

    def remove(self, name: str) -> Optional[Table]:
        """Remove and return a table, or None when it is not registered."""
        index = self._registry.get(name)
        if index is None:
            return None
        table = self._tables.pop(index)
        self._rebuild_registry()
        return table

    def rename(self, old: str, new: str) -> bool:
        """
        Rename a table.

        Returns:
            False when ``old`` is unknown or ``new`` is taken by another table
        """
        table = self.get(old)
        if table is None or (new != old and new in self._registry):
            return False
        table.name = new
        self._rebuild_registry()
        return True

    def clear(self) -> None:
        """Drop every table."""
        self._tables.clear()
        self._registry.clear()

    def first(self) -> Optional[Table]:
        """The first registered table, if any."""
        return self._tables[0] if self._tables else None

    def total_rows(self) -> int:
        """Row count across all tables."""
        return sum(len(table) for table in self._tables)

    def _rebuild_registry(self) -> None:
        self._registry = {table.name: index for index, table in enumerate(self._tables)}
