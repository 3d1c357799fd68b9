"""Converter configuration model."""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

DEFAULT_OUTPUT_NAME = "json"
DEFAULT_LOCALE = "en_US"
DEFAULT_NAME_LOOKBACK = 50


@dataclass
class ConverterOptions:
    """
    Configuration for a conversion run.

    Attributes:
        output_name: Table-set name and fallback node name for unnamed nodes
        bson: Rewrite BSON extended constructs before scanning
        force_primary_key: Column copied from each parent row into its children
        max_depth: Number of levels to convert (0 = unlimited)
        sanitize_names: Strip diacritics and special characters from names
        arrays_as_tables: Store literal arrays in dedicated tables
        remove_primary_key: Drop key constraints from the final tables
        parallel: Process levels and merges on a worker pool
        max_workers: Worker count (None = available CPUs)
        locale: Locale used to recognize numeric cells
        name_lookback: Characters scanned backwards to resolve node names
    """

    output_name: str = DEFAULT_OUTPUT_NAME
    bson: bool = False
    force_primary_key: str = ""
    max_depth: int = 0
    sanitize_names: bool = True
    arrays_as_tables: bool = False
    remove_primary_key: bool = True
    parallel: bool = True
    max_workers: Optional[int] = None
    locale: str = DEFAULT_LOCALE
    name_lookback: int = DEFAULT_NAME_LOOKBACK

    def __post_init__(self):
        """Validate options after initialization."""
        if not self.output_name:
            self.output_name = DEFAULT_OUTPUT_NAME
        self._validate()

    def _validate(self) -> None:
        """Validate option values."""
        if self.max_depth < 0:
            raise ValueError("max_depth must be non-negative (0 = unlimited)")

        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        if self.name_lookback < 1:
            raise ValueError("name_lookback must be at least 1")

        if not self.locale:
            raise ValueError("locale cannot be empty")

    def effective_workers(self) -> int:
        """Number of worker units used by the parallel phases."""
        if not self.parallel:
            return 1
        return self.max_workers or os.cpu_count() or 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert options to dictionary for JSON serialization."""
        return {
            "outputName": self.output_name,
            "bson": self.bson,
            "forcePrimaryKey": self.force_primary_key,
            "maxDepth": self.max_depth,
            "sanitizeNames": self.sanitize_names,
            "arraysAsTables": self.arrays_as_tables,
            "removePrimaryKey": self.remove_primary_key,
            "parallel": self.parallel,
            "maxWorkers": self.max_workers,
            "locale": self.locale,
            "nameLookback": self.name_lookback,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConverterOptions":
        """Create ConverterOptions from dictionary, ignoring unknown keys."""
        defaults = cls()
        return cls(
            output_name=data.get("outputName", defaults.output_name),
            bson=data.get("bson", defaults.bson),
            force_primary_key=data.get("forcePrimaryKey", defaults.force_primary_key),
            max_depth=data.get("maxDepth", defaults.max_depth),
            sanitize_names=data.get("sanitizeNames", defaults.sanitize_names),
            arrays_as_tables=data.get("arraysAsTables", defaults.arrays_as_tables),
            remove_primary_key=data.get("removePrimaryKey", defaults.remove_primary_key),
            parallel=data.get("parallel", defaults.parallel),
            max_workers=data.get("maxWorkers", defaults.max_workers),
            locale=data.get("locale", defaults.locale),
            name_lookback=data.get("nameLookback", defaults.name_lookback),
        )

    def replace(self, **changes: Any) -> "ConverterOptions":
        """Return a copy with some fields changed."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return ConverterOptions(**values)
