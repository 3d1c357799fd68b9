"""Core type definitions for the JSON relational converter."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .models.table_set import TableSet
    from .profiler import ConversionMetrics

T = TypeVar("T")


class ErrorType(Enum):
    """Enumeration of error types."""
    SYNTAX = "syntax"
    CANCELLED = "cancelled"
    EXTRACTION = "extraction"
    MERGE = "merge"
    FILESYSTEM = "filesystem"
    INTERNAL = "internal"


class ConversionStatus(Enum):
    """Final state of a conversion run."""
    COMPLETED = "completed"
    INVALID = "invalid"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PatternState(Enum):
    """Lifecycle of a single pattern inside the level table builder."""
    UNVISITED = "unvisited"
    SCANNING_FIELDS = "scanning_fields"
    RECORD_BUILT = "record_built"
    ARRAY_HANDLED = "array_handled"
    ERROR_CAPTURED = "error_captured"


class ScalarKind(Enum):
    """Classification of a text cell, used to decide quoting on export."""
    EMPTY = "empty"
    INTEGER = "integer"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TEXT = "text"


@dataclass
class Completed(Generic[T]):
    """A phase finished and produced a value."""
    value: T


@dataclass
class Cancelled:
    """A phase observed the cancellation signal."""
    reason: str = "Cancellation requested"


@dataclass
class Failed:
    """A phase failed with an error it could not contain."""
    error: Exception


StageOutcome = Union[Completed, Cancelled, Failed]


@dataclass
class ValidationError:
    """Validation error details."""
    type: ErrorType
    message: str
    location: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of input validation."""
    is_valid: bool
    errors: List[ValidationError]
    warnings: List[str]


@dataclass
class ErrorResponse:
    """Response for error handling."""
    can_recover: bool
    suggested_action: str
    partial_results: Optional[Any] = None


@dataclass
class ConversionResult:
    """Result of a conversion run.

    ``tables`` is always a well-formed table set: the converted tables, the
    single ``result``/``error`` diagnostic table, or an empty set when the
    run was cancelled.
    """
    success: bool
    status: ConversionStatus
    tables: "TableSet"
    errors: Optional[List[str]] = None
    metrics: Optional["ConversionMetrics"] = None
    warnings: List[str] = field(default_factory=list)


class ProcessingError(Exception):
    """Custom exception for processing errors."""

    def __init__(self, message: str, error_type: ErrorType, context: Optional[Any] = None):
        super().__init__(message)
        self.error_type = error_type
        self.context = context


class FieldExtractionError(ProcessingError):
    """Raised when the key/value text of a pattern cannot be tokenized."""

    def __init__(self, message: str, position: int):
        super().__init__(message, ErrorType.EXTRACTION, context={"position": position})
        self.position = position


class MergeIncompatibleError(ProcessingError):
    """Raised when two tables cannot be merged into one."""

    def __init__(self, message: str, target: str, source: str):
        super().__init__(message, ErrorType.MERGE, context={"target": target, "source": source})
        self.target = target
        self.source = source


class DuplicateTableError(ProcessingError):
    """Raised when a table name is already registered in a table set."""

    def __init__(self, name: str):
        super().__init__(f"Table '{name}' already exists", ErrorType.INTERNAL, context={"table": name})
        self.name = name


class ConverterInterface(ABC):
    """Abstract interface for the JSON to tables converter."""

    @abstractmethod
    def convert(self, json_string: str, cancel_token: Optional[Any] = None) -> ConversionResult:
        """Convert a JSON-like document into a table set."""
        pass

    @abstractmethod
    async def convert_async(self, json_string: str,
                            cancel_token: Optional[Any] = None) -> ConversionResult:
        """Convert a JSON-like document without blocking the event loop."""
        pass


class ErrorHandlerInterface(ABC):
    """Abstract interface for error handling."""

    @abstractmethod
    def validate_input(self, input_data: str) -> ValidationResult:
        """Validate input data."""
        pass

    @abstractmethod
    def handle_processing_error(self, error: ProcessingError) -> ErrorResponse:
        """Handle processing errors."""
        pass
