"""Fan-in of per-worker chunk results into the run-wide table set."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models.table_set import TableSet
from ..progress import ProgressReporter
from .level_builder import ChunkResult, ParentCellUpdate


@dataclass
class LevelResult:
    """Outcome of recombining one level."""
    depth: int
    tables: TableSet
    added: List[str] = field(default_factory=list)
    renamed: Dict[str, str] = field(default_factory=dict)
    dropped: List[str] = field(default_factory=list)
    updates_applied: int = 0
    updates_missed: int = 0

    def final_name(self, name: str) -> str:
        """Name a table ended up with in the run-wide set."""
        return self.renamed.get(name, name)


class ChunkRecombiner:
    """
    Merges chunk table sets back together after a level has been built.

    One recombiner serves a whole run; its collision counter keeps renamed
    tables unique across levels.
    """

    def __init__(self, progress: Optional[ProgressReporter] = None,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.progress = progress or ProgressReporter(logger=self.logger)
        self._collisions = 0

    def recombine(self, depth: int, chunk_results: List[ChunkResult],
                  run_tables: TableSet) -> LevelResult:
        """
        Fold the chunks of one level into ``run_tables``.

        Chunks are taken in chunk-name order. Tables without rows are
        dropped, name collisions get a ``_<n>`` suffix, and the deferred
        parent-row updates are applied once every table is in place.

        Args:
            depth: Level the chunks were built for
            chunk_results: Output of LevelTableBuilder.build_level
            run_tables: Run-wide table set, modified in place

        Returns:
            LevelResult describing what was added
        """
        ordered = sorted(chunk_results, key=lambda chunk: chunk.chunk_name)
        result = LevelResult(depth=depth, tables=TableSet(f"level_{depth}"))

        for chunk in ordered:
            for table in chunk.tables:
                if not table.rows:
                    result.dropped.append(table.name)
                    continue

                original = table.name
                table.name = self._unique_name(original, run_tables, result.tables)
                if table.name != original:
                    result.renamed[original] = table.name
                    self.progress.emit(f"Renamed table {original} to {table.name}")

                result.tables.add(table)
                run_tables.add(table)
                result.added.append(table.name)

        for chunk in ordered:
            for update in chunk.parent_updates:
                if self._apply_update(update, run_tables):
                    result.updates_applied += 1
                else:
                    result.updates_missed += 1

        self.logger.debug(
            f"Level {depth + 1}: {len(result.added)} table(s) added, "
            f"{len(result.dropped)} empty table(s) dropped, "
            f"{result.updates_applied} array cell(s) written"
        )
        return result

    def _unique_name(self, name: str, run_tables: TableSet, level_tables: TableSet) -> str:
        candidate = name
        while candidate in run_tables or candidate in level_tables:
            self._collisions += 1
            candidate = f"{name}_{self._collisions}"
        return candidate

    def _apply_update(self, update: ParentCellUpdate, run_tables: TableSet) -> bool:
        table = run_tables.get(update.table_name)
        row = table.find_row(update.key_column, update.key_value) if table is not None else None
        if row is None:
            self.logger.warning(
                f"No row {update.key_column}={update.key_value} in {update.table_name} "
                f"for array '{update.column}'"
            )
            return False

        table.add_column(update.column)
        row[update.column] = update.value
        return True
