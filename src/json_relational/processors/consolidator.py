"""Final merge of per-pattern table fragments."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from ..cancellation import CancellationToken, is_cancelled
from ..models.options import ConverterOptions
from ..models.table_set import TableSet
from ..progress import ProgressReporter
from ..types import Cancelled, Completed, Failed, MergeIncompatibleError, StageOutcome
from ..utils.naming import natural_table_key, root_name, sanitize_name
from ..utils.partition import partition

ERROR_SUFFIX = "_error"


class Consolidator:
    """
    Merges every ``<node>{[n]}`` fragment into a single ``<node>`` table.

    Fragments are first checked against the group head in index order;
    the ones that cannot be merged are kept apart under an ``_error``
    suffix. The admitted fragments are then folded in parallel partitions
    into each partition's first member, and the partition survivors are
    merged into the head in index order. The result is the same for any
    worker count.
    """

    def __init__(self, options: Optional[ConverterOptions] = None,
                 progress: Optional[ProgressReporter] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the consolidator.

        Args:
            options: Converter options (parallelism, sanitation, key removal)
            progress: Optional progress reporter
            logger: Optional logger instance
        """
        self.options = options or ConverterOptions()
        self.logger = logger or logging.getLogger(__name__)
        self.progress = progress or ProgressReporter(logger=self.logger)
        self._lock = threading.Lock()

    def consolidate(self, tables: TableSet,
                    cancel_token: Optional[CancellationToken] = None) -> StageOutcome:
        """
        Merge, rename and clean up the run-wide table set in place.

        Args:
            tables: Every table produced by the level builders
            cancel_token: Checked before each table merge

        Returns:
            Completed(tables), Cancelled, or Failed when a merge worker raises
        """
        groups = self.group_by_root(tables)
        removed: List[str] = []
        failed: List[str] = []

        try:
            for root, names in groups.items():
                if len(names) < 2:
                    continue
                self.progress.emit(f"Merging {len(names)} table(s) named {root}")
                admitted = self._admit(tables, names, failed)
                self._merge_partitions(tables, admitted, removed, cancel_token)
                if is_cancelled(cancel_token):
                    return Cancelled(f"Cancelled while merging {root}")

            for name in removed:
                tables.remove(name)
            self._mark_failed(tables, failed)

            for root in groups:
                survivors = sorted(
                    (name for name in tables.names() if root_name(name) == root),
                    key=natural_table_key
                )
                target = tables.get(survivors[0]) if survivors else None
                for name in survivors[1:]:
                    if is_cancelled(cancel_token):
                        return Cancelled(f"Cancelled while merging {root}")
                    target.merge(tables.get(name))
                    tables.remove(name)
        except Exception as e:
            self.logger.exception(f"Merge of {tables.name} failed")
            return Failed(e)

        self._finalize(tables)
        self.progress.emit(f"Merged into {len(tables)} table(s)")
        return Completed(tables)

    @staticmethod
    def group_by_root(tables: TableSet) -> Dict[str, List[str]]:
        """Group table names by root name, each group in natural index order."""
        groups: Dict[str, List[str]] = {}
        for name in tables.names():
            groups.setdefault(root_name(name), []).append(name)
        for names in groups.values():
            names.sort(key=natural_table_key)
        return groups

    def _admit(self, tables: TableSet, names: List[str], failed: List[str]) -> List[str]:
        """
        Decide, in index order, which fragments can join the group head.

        A fragment is admitted when it is compatible with the head plus every
        fragment admitted before it. Rejected fragments are appended to
        ``failed`` one by one, so the outcome never depends on partitioning.
        """
        head = tables.get(names[0])
        taken = {row.get(head.primary_key, "") for row in head.rows} if head.primary_key else set()
        admitted = []

        for name in names[1:]:
            try:
                taken |= head.check_merge(tables.get(name), taken)
            except MergeIncompatibleError as e:
                self.logger.warning(f"Cannot merge {name} into {head.name}: {e}")
                failed.append(name)
                continue
            admitted.append(name)

        return admitted

    def _merge_partitions(self, tables: TableSet, names: List[str], removed: List[str],
                          cancel_token: Optional[CancellationToken]) -> None:
        chunks = partition(names, self.options.effective_workers())

        if len(chunks) <= 1:
            for _, chunk in chunks:
                self._merge_chunk(tables, chunk, removed, cancel_token)
            return

        with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
            futures = [
                executor.submit(self._merge_chunk, tables, chunk, removed, cancel_token)
                for _, chunk in chunks
            ]
            wait(futures)
            for future in futures:
                future.result()

    def _merge_chunk(self, tables: TableSet, names: List[str], removed: List[str],
                     cancel_token: Optional[CancellationToken]) -> None:
        target = tables.get(names[0])

        for name in names[1:]:
            if is_cancelled(cancel_token):
                return
            target.merge(tables.get(name))
            with self._lock:
                removed.append(name)

    def _mark_failed(self, tables: TableSet, names: List[str]) -> None:
        for name in names:
            new_name = name + ERROR_SUFFIX
            counter = 1
            while new_name in tables:
                counter += 1
                new_name = f"{name}{ERROR_SUFFIX}{counter}"
            tables.rename(name, new_name)
            self.progress.emit(f"Table {name} could not be merged, kept as {new_name}")

    def _finalize(self, tables: TableSet) -> None:
        for table in tables:
            root = root_name(table.name)
            if root != table.name and not tables.rename(table.name, root):
                self.logger.warning(f"Cannot rename {table.name} to {root}: name already taken")

        if self.options.sanitize_names:
            self._sanitize(tables)

        first = tables.first()
        prefix = first.name if first is not None else tables.name
        for table in tables:
            table.namespace = f"{prefix}_{table.name}"
            if self.options.remove_primary_key:
                table.clear_primary_key()

    def _sanitize(self, tables: TableSet) -> None:
        for table in tables:
            clean = sanitize_name(table.name)
            if clean and clean != table.name and not tables.rename(table.name, clean):
                self.logger.warning(f"Cannot rename table {table.name} to {clean}: name already taken")

            for column in list(table.columns):
                clean = sanitize_name(column)
                if clean and clean != column and not table.rename_column(column, clean):
                    self.logger.warning(
                        f"Cannot rename column {table.name}.{column} to {clean}: name already taken"
                    )
