"""Error handling and diagnostic tables for the converter."""

import logging
import os
import pathlib
import traceback
from typing import Optional

from .models.table import Table
from .models.table_set import TableSet
from .preprocessor import PreprocessedDocument
from .types import (
    ErrorHandlerInterface,
    ValidationResult,
    ValidationError,
    ErrorResponse,
    ProcessingError,
    ErrorType
)
from .utils.naming import indexed_table_name

RESULT_TABLE = "result"
RESULT_COLUMN = "error"
EXCEPTION_TABLE = "parser_exception"
EXCEPTION_COLUMNS = ("data", "exception", "source")


class ErrorHandler(ErrorHandlerInterface):
    """
    Error handler for conversion runs.

    Validates input, maps processing errors to recovery advice and builds
    the diagnostic tables that stand in for output when something fails.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the error handler.

        Args:
            logger: Optional logger instance for error reporting
        """
        self.logger = logger or logging.getLogger(__name__)

    def validate_input(self, input_data: str) -> ValidationResult:
        """
        Check that the raw input is non-empty text.

        Args:
            input_data: Document text

        Returns:
            ValidationResult with validation details
        """
        errors = []

        if not isinstance(input_data, str):
            errors.append(ValidationError(
                type=ErrorType.SYNTAX,
                message=f"Input must be text, got {type(input_data).__name__}",
                location="input"
            ))
        elif not input_data.strip():
            errors.append(ValidationError(
                type=ErrorType.SYNTAX,
                message="Input is empty",
                location="input"
            ))

        return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=[])

    def validate_document(self, document: PreprocessedDocument) -> ValidationResult:
        """
        Turn the preprocessor boundary checks into a ValidationResult.

        Args:
            document: Preprocessed document

        Returns:
            ValidationResult with one error per failed boundary test
        """
        errors = []
        warnings = []

        if not document.starts_valid:
            errors.append(ValidationError(
                type=ErrorType.SYNTAX,
                message="Document does not start with '{' or '[' (or an assignment to one)",
                location="start"
            ))
        if not document.ends_valid:
            errors.append(ValidationError(
                type=ErrorType.SYNTAX,
                message="Document does not end with '}' or ']'",
                location="end"
            ))
        if document.prefix:
            warnings.append(f"Assignment prefix '{document.prefix}' was stripped")

        return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)

    def handle_processing_error(self, error: ProcessingError) -> ErrorResponse:
        """
        Handle processing errors and provide recovery suggestions.

        Args:
            error: ProcessingError to handle

        Returns:
            ErrorResponse with recovery information
        """
        self.logger.error(f"Processing error: {error.error_type.value} - {error}")

        if error.error_type == ErrorType.EXTRACTION:
            return ErrorResponse(
                can_recover=True,
                suggested_action="The affected chunk was replaced by a parser_exception table. "
                               "Check the quoting of the reported fragment.",
                partial_results=error.context
            )
        elif error.error_type == ErrorType.MERGE:
            return ErrorResponse(
                can_recover=True,
                suggested_action="The table was kept apart with an _error suffix. "
                               "Nodes sharing a name at different depths usually cause this.",
                partial_results=error.context
            )
        elif error.error_type == ErrorType.CANCELLED:
            return ErrorResponse(
                can_recover=False,
                suggested_action="The conversion was cancelled; run it again to get results.",
                partial_results=None
            )
        elif error.error_type == ErrorType.SYNTAX:
            return ErrorResponse(
                can_recover=False,
                suggested_action="Provide a document that starts with '{' or '[' and ends "
                               "with '}' or ']'.",
                partial_results=None
            )
        elif error.error_type == ErrorType.FILESYSTEM:
            return ErrorResponse(
                can_recover=True,
                suggested_action="Check file permissions, available disk space, and directory access.",
                partial_results=error.context
            )
        else:
            return ErrorResponse(
                can_recover=False,
                suggested_action="Unknown error type. Please check logs and retry.",
                partial_results=None
            )

    def diagnostic_tables(self, raw_input: str, name: str = "json") -> TableSet:
        """
        Build the single-table result returned for unusable input.

        Args:
            raw_input: Text handed to the converter
            name: Table-set name

        Returns:
            TableSet holding ``result`` with one ``error`` row
        """
        tables = TableSet(name)
        table = Table(RESULT_TABLE, [RESULT_COLUMN])
        table.add_row({RESULT_COLUMN: raw_input})
        tables.add(table)
        return tables

    def exception_table(self, data: str, error: Exception, index: int) -> Table:
        """
        Build the diagnostic table replacing a failed chunk.

        Args:
            data: Raw input of the conversion that hit the error
            error: Exception caught at chunk scope
            index: Run-wide index used to keep the table name unique

        Returns:
            Table with ``data``, ``exception`` and ``source`` columns
        """
        table = Table(indexed_table_name(EXCEPTION_TABLE, index), EXCEPTION_COLUMNS)
        table.add_row({
            "data": data,
            "exception": str(error) or type(error).__name__,
            "source": self.exception_source(error),
        })
        return table

    @staticmethod
    def exception_source(error: BaseException) -> str:
        """Describe where an exception was raised: ``function (file:line)``."""
        frames = traceback.extract_tb(error.__traceback__) if error.__traceback__ else []
        if not frames:
            return type(error).__name__
        frame = frames[-1]
        return f"{frame.name} ({os.path.basename(frame.filename)}:{frame.lineno})"

    def validate_output_directory(self, path: str) -> ValidationResult:
        """Check that ``path`` can hold exported tables. It may not exist yet."""
        problem = None
        if not path:
            problem = "Output directory cannot be empty"
        else:
            target = pathlib.Path(path)
            if target.is_dir():
                if not os.access(target, os.W_OK):
                    problem = f"{path} is not writable"
            elif target.exists():
                problem = f"{path} exists and is not a directory"
            else:
                ancestor = next((p for p in target.parents if p.exists()), None)
                if ancestor is not None and not ancestor.is_dir():
                    problem = f"{ancestor} is not a directory"

        errors = [ValidationError(ErrorType.FILESYSTEM, problem, "output_dir")] if problem else []
        return ValidationResult(is_valid=not errors, errors=errors, warnings=[])
