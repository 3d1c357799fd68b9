"""Text-only table model."""

from typing import Dict, Iterable, List, Optional, Set

from ..types import MergeIncompatibleError

Row = Dict[str, str]


class Table:
    """
    An ordered set of named text columns and a sequence of rows.

    Rows are plain dictionaries; a column missing from a row reads as empty
    text. A table declares at most one primary-key column and any number of
    foreign-key columns, all of which are ordinary text columns as well.
    """

    def __init__(self, name: str, columns: Optional[Iterable[str]] = None,
                 namespace: str = ""):
        if not name:
            raise ValueError("Table name cannot be empty")

        self.name = name
        self.namespace = namespace
        self.columns: List[str] = []
        self.rows: List[Row] = []
        self.primary_key: Optional[str] = None
        self.foreign_keys: List[str] = []

        for column in columns or []:
            self.add_column(column)

    def __repr__(self) -> str:
        return f"Table({self.name!r}, columns={self.columns!r}, rows={len(self.rows)})"

    def __len__(self) -> int:
        return len(self.rows)

    def has_column(self, column: str) -> bool:
        """Check if a column exists."""
        return column in self.columns

    def add_column(self, column: str) -> bool:
        """
        Register a column, back-filling existing rows with empty text.

        Returns:
            False when the column was already present
        """
        if column in self.columns:
            return False
        self.columns.append(column)
        for row in self.rows:
            row[column] = ""
        return True

    def set_primary_key(self, column: str) -> None:
        """Declare ``column`` as the primary key, adding it if needed."""
        self.add_column(column)
        self.primary_key = column

    def clear_primary_key(self) -> None:
        """Drop the key constraint; the column and its data stay."""
        self.primary_key = None

    def add_foreign_key(self, column: str) -> None:
        """Declare ``column`` as a foreign key, adding it if needed."""
        self.add_column(column)
        if column not in self.foreign_keys:
            self.foreign_keys.append(column)

    def new_row(self) -> Row:
        """Create a detached row with every column set to empty text."""
        return {column: "" for column in self.columns}

    def add_row(self, row: Row) -> None:
        """Append a row, registering any columns it introduces."""
        for column in row:
            self.add_column(column)
        self.rows.append({column: row.get(column, "") for column in self.columns})

    def value(self, row: Row, column: str) -> str:
        """Read a cell, treating missing cells as empty text."""
        return row.get(column, "")

    def find_row(self, column: str, value: str) -> Optional[Row]:
        """Return the first row whose ``column`` equals ``value``, or None."""
        if column not in self.columns:
            return None
        for row in self.rows:
            if row.get(column, "") == value:
                return row
        return None

    def find_by_key(self, value: str) -> Optional[Row]:
        """Look a row up by primary-key value."""
        if self.primary_key is None:
            return None
        return self.find_row(self.primary_key, value)

    def rename_column(self, old: str, new: str) -> bool:
        """
        Rename a column in place, keeping key declarations in sync.

        Returns:
            False when ``old`` is missing or ``new`` is already taken
        """
        if old not in self.columns or (new != old and new in self.columns):
            return False
        if new == old:
            return True

        self.columns[self.columns.index(old)] = new
        for row in self.rows:
            row[new] = row.pop(old, "")
        if self.primary_key == old:
            self.primary_key = new
        self.foreign_keys = [new if fk == old else fk for fk in self.foreign_keys]
        return True

    def check_merge(self, other: "Table", taken: Optional[Set[str]] = None) -> Set[str]:
        """
        Verify that ``other`` can be merged into this table.

        Args:
            other: Incoming table
            taken: Key values already claimed (defaults to this table's keys)

        Returns:
            The incoming primary-key values

        Raises:
            MergeIncompatibleError: If the primary keys differ or an incoming
                key value is already present
        """
        if self.primary_key != other.primary_key:
            raise MergeIncompatibleError(
                f"Primary key mismatch ({self.primary_key or 'none'} != "
                f"{other.primary_key or 'none'})",
                self.name, other.name
            )

        incoming: Set[str] = set()
        if self.primary_key is not None:
            if taken is None:
                taken = {row.get(self.primary_key, "") for row in self.rows}
            for row in other.rows:
                key = row.get(self.primary_key, "")
                if key in taken or key in incoming:
                    raise MergeIncompatibleError(
                        f"Duplicate primary key value '{key}' in column '{self.primary_key}'",
                        self.name, other.name
                    )
                incoming.add(key)
        return incoming

    def merge(self, other: "Table") -> None:
        """
        Append the rows of ``other`` (schema-compatible union).

        Missing columns are added on the fly. Nothing is modified when the
        tables are incompatible.

        Raises:
            MergeIncompatibleError: If the tables cannot be merged
        """
        self.check_merge(other)

        for column in other.columns:
            self.add_column(column)
        for fk in other.foreign_keys:
            self.add_foreign_key(fk)
        for row in other.rows:
            self.add_row(row)

    def to_records(self) -> List[Row]:
        """Return rows as ordered dictionaries over every column."""
        return [{column: row.get(column, "") for column in self.columns} for row in self.rows]

    def describe(self) -> Dict[str, object]:
        """Summarize the table schema for indexes and logs."""
        return {
            "name": self.name,
            "namespace": self.namespace,
            "columns": list(self.columns),
            "primaryKey": self.primary_key,
            "foreignKeys": list(self.foreign_keys),
            "rowCount": len(self.rows),
        }
