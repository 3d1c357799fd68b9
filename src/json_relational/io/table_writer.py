"""Table writer for exporting converted table sets."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..error_handler import ErrorHandler
from ..models.table import Table
from ..models.table_set import TableSet
from ..types import ProcessingError, ErrorType
from ..utils.naming import sanitize_name
from ..value_normalizer import ValueNormalizer

INDEX_FILENAME = "_index.json"
SUPPORTED_FORMATS = ("csv", "json")


class TableWriter:
    """
    Writes one file per table plus an ``_index.json`` describing them.

    CSV files hold every cell as text. JSON files hold a list of records
    whose values go through the value normalizer, so integers and booleans
    are unquoted and empty cells become null.
    """

    def __init__(self, normalizer: Optional[ValueNormalizer] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the table writer.

        Args:
            normalizer: ValueNormalizer used for JSON rendering
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)
        self.normalizer = normalizer or ValueNormalizer(logger=self.logger)
        self.error_handler = ErrorHandler(self.logger)

    def write_tables(self, tables: TableSet, output_dir: str, fmt: str = "csv",
                     handle_numerics: bool = True) -> Dict[str, Any]:
        """
        Write every table of ``tables`` to ``output_dir``.

        Args:
            tables: Table set to export
            output_dir: Output directory path (created if missing)
            fmt: "csv" or "json"
            handle_numerics: Unquote numeric and boolean cells in JSON output

        Returns:
            Dictionary with write operation results

        Raises:
            ProcessingError: If the format is unknown or writing fails
        """
        if fmt not in SUPPORTED_FORMATS:
            raise ProcessingError(
                f"Unsupported export format: {fmt}",
                ErrorType.FILESYSTEM,
                context={"format": fmt}
            )

        validation = self.error_handler.validate_output_directory(output_dir)
        if not validation.is_valid:
            raise ProcessingError(
                validation.errors[0].message,
                ErrorType.FILESYSTEM,
                context={"output_dir": output_dir}
            )

        output_path = Path(output_dir)
        try:
            output_path.mkdir(parents=True, exist_ok=True)

            results = {
                "success": True,
                "output_directory": str(output_path.absolute()),
                "files_written": [],
                "total_size": 0,
            }
            index = {"name": tables.name, "format": fmt, "tables": []}
            used = set()

            for table in tables:
                filename = self._filename(table.name, fmt, used)
                file_path = output_path / filename
                if fmt == "csv":
                    self._write_csv(file_path, table)
                else:
                    self._write_json(file_path, table, handle_numerics)

                size = file_path.stat().st_size
                results["files_written"].append({
                    "table": table.name,
                    "filename": filename,
                    "path": str(file_path.absolute()),
                    "size": size,
                })
                results["total_size"] += size

                entry = table.describe()
                entry["file"] = filename
                index["tables"].append(entry)

            index_path = output_path / INDEX_FILENAME
            with open(index_path, "w", encoding="utf-8") as f:
                json.dump(index, f, indent=2, ensure_ascii=False)

            self.logger.info(f"Wrote {len(results['files_written'])} table file(s) to {output_dir}")
            return results

        except OSError as e:
            raise ProcessingError(
                f"Failed to write tables: {str(e)}",
                ErrorType.FILESYSTEM,
                context={"output_dir": output_dir, "table_count": len(tables)}
            ) from e

    def _write_csv(self, file_path: Path, table: Table) -> None:
        with open(file_path, "w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=table.columns)
            writer.writeheader()
            writer.writerows(table.to_records())

    def _write_json(self, file_path: Path, table: Table, handle_numerics: bool) -> None:
        records = [
            {column: self.normalizer.to_json_value(value, handle_numerics)
             for column, value in record.items()}
            for record in table.to_records()
        ]
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, ensure_ascii=False)

    @staticmethod
    def _filename(table_name: str, fmt: str, used: set) -> str:
        """File names are sanitized table names, de-duplicated with a counter."""
        base = sanitize_name(table_name).strip("_") or "table"
        filename = f"{base}.{fmt}"
        counter = 1
        while filename in used:
            counter += 1
            filename = f"{base}_{counter}.{fmt}"
        used.add(filename)
        return filename
