"""Structural pattern model produced by the scanner."""

from dataclasses import dataclass
from typing import Any, Dict

from ..utils.quoting import is_balanced_pair


@dataclass(frozen=True)
class Pattern:
    """
    One balanced object or literal array discovered by the scanner.

    ``parent_element`` and ``element_index`` are 1-based ordinals among the
    objects of a depth level; they only serve as join keys between levels.
    """

    node_name: str
    raw_span: str
    is_array: bool
    depth: int
    parent_element: int
    element_index: int = 0

    def __post_init__(self):
        """Validate pattern after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate pattern integrity."""
        if self.depth < 0:
            raise ValueError("depth must be non-negative")

        if self.parent_element < 1:
            raise ValueError("parent_element must be a 1-based ordinal")

        if not is_balanced_pair(self.raw_span):
            raise ValueError("raw_span must start and end with a matching delimiter pair")

        if self.is_array != self.raw_span.startswith("["):
            raise ValueError("is_array does not match the opening delimiter")

    def is_root(self) -> bool:
        """Check if this pattern sits at the document root level."""
        return self.depth == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert pattern to dictionary for JSON serialization."""
        return {
            "nodeName": self.node_name,
            "rawSpan": self.raw_span,
            "isArray": self.is_array,
            "depth": self.depth,
            "parentElement": self.parent_element,
            "elementIndex": self.element_index,
        }
