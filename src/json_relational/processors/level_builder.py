"""Per-level, partitioned table building."""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import List, Optional

from ..cancellation import CancellationToken, is_cancelled
from ..error_handler import ErrorHandler
from ..field_extractor import FieldExtractor, KeyValue
from ..models.options import ConverterOptions
from ..models.pattern import Pattern
from ..models.table import Row, Table
from ..models.table_set import TableSet
from ..progress import ProgressReporter
from ..types import Cancelled, Completed, PatternState, StageOutcome
from ..utils.naming import indexed_table_name, root_name
from ..utils.partition import partition
from ..utils.quoting import mask_nested_spans
from ..value_normalizer import ValueNormalizer


@dataclass
class LevelInput:
    """
    Everything needed to build the tables of one depth level.

    ``parent_tables[i]`` is the name of the table built for the parent of
    ``patterns[i]`` on the previous level, or empty text at the root.
    ``raw_input`` is the document being converted; it fills the ``data``
    cell of the diagnostic table that replaces a failed chunk.
    """
    depth: int
    patterns: List[Pattern]
    parent_tables: List[str]
    index_offset: int
    has_children: bool
    fallback_name: str
    previous_level_tables: List[str] = field(default_factory=list)
    raw_input: str = ""

    def __post_init__(self):
        if len(self.parent_tables) != len(self.patterns):
            raise ValueError("parent_tables must hold one entry per pattern")


@dataclass
class ParentCellUpdate:
    """A literal array folded into a cell of its parent's row."""
    table_name: str
    key_column: str
    key_value: str
    column: str
    value: str


@dataclass
class ChunkResult:
    """Tables and deferred parent updates produced by one worker."""
    chunk_name: str
    start: int
    tables: TableSet
    parent_updates: List[ParentCellUpdate] = field(default_factory=list)
    states: List[PatternState] = field(default_factory=list)
    cancelled: bool = False
    error: Optional[str] = None


@dataclass
class _ParentRef:
    table: Table
    row: Row


class LevelTableBuilder:
    """
    Turns the patterns of one depth level into tables.

    Patterns are split into contiguous chunks processed on a thread pool.
    Every worker fills its own TableSet and only reads the run-wide tables
    of earlier levels; updates to parent rows are returned, not applied.
    """

    def __init__(self, options: Optional[ConverterOptions] = None,
                 normalizer: Optional[ValueNormalizer] = None,
                 extractor: Optional[FieldExtractor] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 progress: Optional[ProgressReporter] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the level table builder.

        Args:
            options: Converter options (parallelism, key and array policies)
            normalizer: Optional ValueNormalizer instance
            extractor: Optional FieldExtractor instance
            error_handler: Optional ErrorHandler instance
            progress: Optional progress reporter
            logger: Optional logger instance
        """
        self.options = options or ConverterOptions()
        self.logger = logger or logging.getLogger(__name__)
        self.normalizer = normalizer or ValueNormalizer(self.options.locale, logger=self.logger)
        self.extractor = extractor or FieldExtractor(self.logger)
        self.error_handler = error_handler or ErrorHandler(self.logger)
        self.progress = progress or ProgressReporter(logger=self.logger)

    def build_level(self, level: LevelInput, run_tables: TableSet,
                    cancel_token: Optional[CancellationToken] = None) -> StageOutcome:
        """
        Build the tables of one level.

        Args:
            level: Patterns of the level and their parent tables
            run_tables: Tables of earlier levels (read only)
            cancel_token: Checked once per pattern

        Returns:
            Completed(list of ChunkResult in chunk order) or Cancelled
        """
        chunks = partition(level.patterns, self.options.effective_workers())

        for worker, (start, chunk) in enumerate(chunks):
            nodes = []
            for pattern in chunk:
                name = pattern.node_name or level.fallback_name
                if name not in nodes:
                    nodes.append(name)
            self.progress.emit(
                f"[Worker {worker}] Processing {len(chunk)} pattern(s) on level "
                f"{level.depth + 1} ({','.join(nodes)})"
            )

        if len(chunks) <= 1:
            results = [self._build_chunk(level, start, chunk, run_tables, cancel_token)
                       for start, chunk in chunks]
        else:
            with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
                futures = [
                    executor.submit(self._build_chunk, level, start, chunk, run_tables, cancel_token)
                    for start, chunk in chunks
                ]
                wait(futures)
                results = [future.result() for future in futures]

        if any(result.cancelled for result in results):
            return Cancelled(f"Cancelled while building level {level.depth + 1}")
        return Completed(results)

    def _build_chunk(self, level: LevelInput, start: int, patterns: List[Pattern],
                     run_tables: TableSet,
                     cancel_token: Optional[CancellationToken]) -> ChunkResult:
        first_index = level.index_offset + start
        result = ChunkResult(
            chunk_name=f"chunk_{first_index:08d}",
            start=first_index,
            tables=TableSet(f"chunk_{first_index:08d}")
        )
        current: Optional[Pattern] = None

        try:
            for offset, pattern in enumerate(patterns):
                if is_cancelled(cancel_token):
                    result.cancelled = True
                    return result

                current = pattern
                state = self._build_pattern(
                    pattern,
                    first_index + offset,
                    level.parent_tables[start + offset],
                    level,
                    run_tables,
                    result
                )
                result.states.append(state)
        except Exception as e:
            self.logger.error(f"Chunk {result.chunk_name} failed: {e}")
            self.progress.emit(
                f"Unable to process level {level.depth + 1} chunk {result.chunk_name}: {e}"
            )
            result.tables = TableSet(result.chunk_name)
            result.parent_updates = []
            result.tables.add(self.error_handler.exception_table(
                level.raw_input or (current.raw_span if current else ""), e, first_index
            ))
            result.states.append(PatternState.ERROR_CAPTURED)
            result.error = str(e)

        return result

    def _build_pattern(self, pattern: Pattern, run_index: int, parent_table: str,
                       level: LevelInput, run_tables: TableSet,
                       result: ChunkResult) -> PatternState:
        """Process one pattern: Unvisited -> ScanningFields -> RecordBuilt | ArrayHandled."""
        node = pattern.node_name or level.fallback_name
        table = result.tables.add(Table(indexed_table_name(node, run_index)))
        parent = self._resolve_parent(pattern, node, parent_table, level, run_tables)

        fields = self.extractor.extract(mask_nested_spans(pattern.raw_span))
        if fields:
            self._build_record(pattern, node, table, fields, parent_table, parent, level)
            return PatternState.RECORD_BUILT

        if pattern.is_array:
            self._handle_array(pattern, node, table, parent_table, parent, result)
            return PatternState.ARRAY_HANDLED

        # objects without fields, e.g. {}
        return PatternState.SCANNING_FIELDS

    def _build_record(self, pattern: Pattern, node: str, table: Table,
                      fields: List[KeyValue], parent_table: str,
                      parent: Optional[_ParentRef], level: LevelInput) -> None:
        for kv in fields:
            table.add_column(kv.key or f"{node}_value")

        row = table.new_row()
        for kv in fields:
            row[kv.key or f"{node}_value"] = self.normalizer.normalize_cell(kv.raw_value)

        if level.has_children:
            primary_key = f"{node}_id"
            table.set_primary_key(primary_key)
            row[primary_key] = str(pattern.element_index)

        if parent_table:
            foreign_key = self._foreign_key_column(parent_table, node, level.has_children)
            table.add_foreign_key(foreign_key)
            row[foreign_key] = str(pattern.parent_element)

        self._copy_forced_key(table, row, parent)
        table.add_row(row)

    def _handle_array(self, pattern: Pattern, node: str, table: Table, parent_table: str,
                      parent: Optional[_ParentRef], result: ChunkResult) -> None:
        flat = pattern.raw_span.replace("\r", " ").replace("\n", " ")

        if not self.options.arrays_as_tables and parent is not None:
            result.parent_updates.append(ParentCellUpdate(
                table_name=parent.table.name,
                key_column=parent.table.primary_key,
                key_value=parent.row.get(parent.table.primary_key, ""),
                column=node,
                value=flat[1:-1].strip()
            ))
            return

        table.add_column(node)
        row = table.new_row()
        row[node] = flat
        if parent_table:
            foreign_key = self._foreign_key_column(parent_table, node, False)
            table.add_foreign_key(foreign_key)
            row[foreign_key] = str(pattern.parent_element)
        self._copy_forced_key(table, row, parent)
        table.add_row(row)

    def _resolve_parent(self, pattern: Pattern, node: str, parent_table: str,
                        level: LevelInput, run_tables: TableSet) -> Optional[_ParentRef]:
        """
        Find the parent row, first by table name then by column name.

        The second pass covers nodes whose parent table is unknown: the
        first table of the previous level that already has a column named
        after the node and a row keyed ``parent_element`` wins.
        """
        key = str(pattern.parent_element)

        if parent_table:
            table = run_tables.get(parent_table)
            if table is not None:
                row = table.find_by_key(key)
                if row is not None:
                    return _ParentRef(table, row)

        for name in level.previous_level_tables:
            table = run_tables.get(name)
            if table is None or not table.has_column(node):
                continue
            row = table.find_by_key(key)
            if row is not None:
                return _ParentRef(table, row)

        return None

    def _copy_forced_key(self, table: Table, row: Row, parent: Optional[_ParentRef]) -> None:
        forced = self.options.force_primary_key
        if not forced or parent is None or not parent.table.has_column(forced):
            return
        table.add_foreign_key(forced)
        # a non-empty value of the child wins over the parent's
        if not row.get(forced):
            row[forced] = parent.table.value(parent.row, forced)

    @staticmethod
    def _foreign_key_column(parent_table: str, node: str, has_primary_key: bool) -> str:
        parent_root = root_name(parent_table)
        column = f"{parent_root}_id"
        if has_primary_key and parent_root == node:
            column = f"{parent_root}_parent_id"
        return column
