"""Main JSON to relational tables converter."""

import asyncio
import functools
import logging
from typing import Any, Dict, List, Optional

from .cancellation import CancellationToken, is_cancelled
from .error_handler import ErrorHandler
from .field_extractor import FieldExtractor
from .models.options import ConverterOptions
from .models.table_set import TableSet
from .preprocessor import Preprocessor
from .processors import ChunkRecombiner, Consolidator, LevelInput, LevelTableBuilder
from .profiler import ConversionMetrics, PerformanceProfiler, ProfileSession
from .progress import ProgressReporter, ProgressSink
from .scanner import ScanResult, StructuralScanner
from .types import (
    Cancelled,
    ConversionResult,
    ConversionStatus,
    ConverterInterface,
    ErrorType,
    Failed,
    ProcessingError
)
from .utils.naming import indexed_table_name
from .value_normalizer import NumericPredicate, ValueNormalizer


class JsonTableConverter(ConverterInterface):
    """
    Converts a JSON-like document into a set of related tables.

    The pipeline runs forward only: preprocess, scan, build and recombine
    each depth level, then consolidate. Several conversions may run at
    once on one converter; each gets its own profiling session.
    """

    def __init__(self, options: Optional[ConverterOptions] = None,
                 logger: Optional[logging.Logger] = None,
                 progress: Optional[ProgressSink] = None,
                 numeric_predicate: Optional[NumericPredicate] = None):
        """
        Initialize the converter.

        Args:
            options: Conversion options (defaults to ConverterOptions())
            logger: Optional logger instance
            progress: Optional callable receiving status messages
            numeric_predicate: ``(token, locale) -> bool`` overriding the
                Babel based numeric detection
        """
        self.options = options or ConverterOptions()
        self.logger = logger or logging.getLogger(__name__)
        self.progress = ProgressReporter(progress, self.logger)

        self.error_handler = ErrorHandler(self.logger)
        self.preprocessor = Preprocessor(self.options.bson, self.logger)
        self.scanner = StructuralScanner(self.options.name_lookback, self.logger)
        self.normalizer = ValueNormalizer(self.options.locale, numeric_predicate, self.logger)
        self.builder = LevelTableBuilder(
            options=self.options,
            normalizer=self.normalizer,
            extractor=FieldExtractor(self.logger),
            error_handler=self.error_handler,
            progress=self.progress,
            logger=self.logger
        )
        self.consolidator = Consolidator(self.options, self.progress, self.logger)
        self.profiler = PerformanceProfiler(self.logger)

    def convert(self, json_string: str,
                cancel_token: Optional[CancellationToken] = None) -> ConversionResult:
        """
        Convert a document into tables.

        Args:
            json_string: Document text
            cancel_token: Optional token polled by every phase

        Returns:
            ConversionResult; ``tables`` is always a usable table set
        """
        validation = self.error_handler.validate_input(json_string)
        if not validation.is_valid:
            raw = json_string if isinstance(json_string, str) else ""
            return self._invalid(raw, self.options.output_name,
                                 [error.message for error in validation.errors])

        session = self.profiler.start("convert", len(json_string.encode("utf-8")))
        try:
            return self._run(json_string, cancel_token, session)
        except ProcessingError as e:
            response = self.error_handler.handle_processing_error(e)
            return self._failed(json_string, [str(e), response.suggested_action], session)
        except Exception as e:
            self.logger.exception(f"Unexpected error during conversion: {e}")
            return self._failed(json_string, [f"Unexpected error: {str(e)}"], session)

    async def convert_async(self, json_string: str,
                            cancel_token: Optional[CancellationToken] = None) -> ConversionResult:
        """
        Convert without blocking the event loop.

        The synchronous pipeline runs in the loop's default executor; cancel
        it from asyncio code through ``cancel_token``.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.convert, json_string, cancel_token)
        )

    def inspect(self, json_string: str) -> Dict[str, Any]:
        """
        Report what the scanner sees without building tables.

        Returns:
            Dictionary with validity, prefix, level counts and rejected spans
        """
        document = self.preprocessor.process(json_string)
        report: Dict[str, Any] = {
            "valid": document.is_valid,
            "prefix": document.prefix,
            "bsonRewrites": document.bson_rewrites,
            "levels": {},
            "patterns": 0,
            "rejected": 0,
        }
        if not document.is_valid:
            return report

        outcome = self.scanner.scan(document.text)
        scan: ScanResult = outcome.value
        report["levels"] = {depth + 1: count for depth, count in sorted(scan.level_counts().items())}
        report["patterns"] = len(scan.patterns)
        report["rejected"] = scan.rejected
        return report

    def _run(self, json_string: str, cancel_token: Optional[CancellationToken],
             session: ProfileSession) -> ConversionResult:
        self.progress.emit("Conversion started")

        document = self.preprocessor.process(json_string)
        name = document.prefix or self.options.output_name
        doc_validation = self.error_handler.validate_document(document)
        if not doc_validation.is_valid:
            self.progress.emit("Input is not a valid JSON document")
            return self._invalid(json_string, name,
                                 [error.message for error in doc_validation.errors], session)
        self.progress.emit("Input is valid")

        if is_cancelled(cancel_token):
            return self._cancelled(name, "Cancelled before scanning", session)

        outcome = self.scanner.scan(document.text, cancel_token)
        if isinstance(outcome, Cancelled):
            return self._cancelled(name, outcome.reason, session)
        scan: ScanResult = outcome.value

        if not scan.patterns:
            self.progress.emit("No balanced structure found")
            return self._invalid(json_string, name, ["No balanced structure found"], session)

        last_depth = scan.max_depth
        if self.options.max_depth:
            last_depth = min(last_depth, self.options.max_depth - 1)

        run_tables = TableSet(name)
        recombiner = ChunkRecombiner(self.progress, self.logger)
        warnings: List[str] = list(doc_validation.warnings)
        element_tables: Dict[int, str] = {}
        previous_level: List[str] = []
        offset = 0

        for depth in range(last_depth + 1):
            patterns = scan.at_depth(depth)
            names = [indexed_table_name(p.node_name or name, offset + i)
                     for i, p in enumerate(patterns)]
            level = LevelInput(
                depth=depth,
                patterns=patterns,
                parent_tables=[element_tables.get(p.parent_element, "") if depth else ""
                               for p in patterns],
                index_offset=offset,
                has_children=depth < last_depth,
                fallback_name=name,
                previous_level_tables=previous_level,
                raw_input=json_string
            )
            self.progress.emit(
                f"Processing level {depth + 1} of {last_depth + 1}: {len(patterns)} pattern(s)"
            )

            built = self.builder.build_level(level, run_tables, cancel_token)
            if isinstance(built, Cancelled):
                return self._cancelled(name, built.reason, session)

            for chunk in built.value:
                if chunk.error:
                    warnings.append(f"Level {depth + 1}, {chunk.chunk_name}: {chunk.error}")

            level_result = recombiner.recombine(depth, built.value, run_tables)
            element_tables = {
                p.element_index: level_result.final_name(table_name)
                for p, table_name in zip(patterns, names) if not p.is_array
            }
            previous_level = list(level_result.added)
            offset += len(patterns)
            self.profiler.sample(session)

        consolidated = self.consolidator.consolidate(run_tables, cancel_token)
        if isinstance(consolidated, Cancelled):
            return self._cancelled(name, consolidated.reason, session)
        if isinstance(consolidated, Failed):
            return self._failed(json_string, [f"Merge failed: {consolidated.error}"], session)

        tables: TableSet = consolidated.value
        self.progress.emit(f"Conversion completed: {len(tables)} table(s)")
        return ConversionResult(
            success=True,
            status=ConversionStatus.COMPLETED,
            tables=tables,
            metrics=self._stop_profiling(
                session,
                patterns_found=len(scan.patterns),
                levels=last_depth + 1,
                tables_created=len(tables),
                rows_created=tables.total_rows()
            ),
            warnings=warnings
        )

    def _invalid(self, raw: str, name: str, errors: List[str],
                 session: Optional[ProfileSession] = None) -> ConversionResult:
        return ConversionResult(
            success=False,
            status=ConversionStatus.INVALID,
            tables=self.error_handler.diagnostic_tables(raw, name),
            errors=errors,
            metrics=self._stop_profiling(session)
        )

    def _failed(self, raw: str, errors: List[str],
                session: Optional[ProfileSession] = None) -> ConversionResult:
        self.progress.emit("Conversion failed")
        return ConversionResult(
            success=False,
            status=ConversionStatus.FAILED,
            tables=self.error_handler.diagnostic_tables(raw, self.options.output_name),
            errors=errors,
            metrics=self._stop_profiling(session)
        )

    def _cancelled(self, name: str, reason: str,
                   session: Optional[ProfileSession] = None) -> ConversionResult:
        self.progress.emit("Conversion cancelled")
        response = self.error_handler.handle_processing_error(
            ProcessingError(reason, ErrorType.CANCELLED)
        )
        return ConversionResult(
            success=False,
            status=ConversionStatus.CANCELLED,
            tables=TableSet(name),
            errors=[reason, response.suggested_action],
            metrics=self._stop_profiling(session)
        )

    def _stop_profiling(self, session: Optional[ProfileSession],
                        **counters: int) -> Optional[ConversionMetrics]:
        if session is None or session.closed:
            return None
        return self.profiler.stop(session, **counters)
