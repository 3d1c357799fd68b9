"""Escape-aware structural scanner.

One left-to-right pass over the document discovers every balanced object
and every literal array (an array whose content holds no nested object or
array) and records them as :class:`Pattern` instances.

Depth counts enclosing objects only. Arrays that contain structures are
transparent containers: their elements sit at the depth of the array
itself and point at the enclosing object as their parent. This keeps
``{"items": [{"n": 1}, {"n": 2}]}`` a two-level document whose items link
straight to the root row.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .cancellation import CancellationToken, is_cancelled
from .models.options import DEFAULT_NAME_LOOKBACK
from .models.pattern import Pattern
from .types import Cancelled, Completed, StageOutcome
from .utils.quoting import CLOSERS, OPENERS, is_balanced_pair, toggles_string


@dataclass
class _Frame:
    start: int
    is_array: bool
    depth: int
    element_index: int
    has_nested: bool = False


@dataclass
class ScanContext:
    """Mutable state of one scan, threaded through the pass."""
    text: str
    frames: List[_Frame] = field(default_factory=list)
    object_depth: int = 0
    sibling_counters: List[int] = field(default_factory=list)
    last_names: Dict[int, str] = field(default_factory=dict)
    in_string: bool = False
    patterns: List[Pattern] = field(default_factory=list)
    rejected: int = 0

    def bump_sibling(self, depth: int) -> int:
        """Count one more object opened at ``depth`` and return its ordinal."""
        while len(self.sibling_counters) <= depth:
            self.sibling_counters.append(0)
        self.sibling_counters[depth] += 1
        return self.sibling_counters[depth]

    def sibling_count(self, depth: int) -> Optional[int]:
        """Objects opened so far at ``depth``, or None if none were."""
        if 0 <= depth < len(self.sibling_counters) and self.sibling_counters[depth] > 0:
            return self.sibling_counters[depth]
        return None


@dataclass
class ScanResult:
    """Ordered patterns plus the deepest level observed."""
    patterns: List[Pattern]
    max_depth: int
    rejected: int = 0

    def at_depth(self, depth: int) -> List[Pattern]:
        """Patterns of one level, in encounter order."""
        return [p for p in self.patterns if p.depth == depth]

    def level_counts(self) -> Dict[int, int]:
        """Number of patterns per depth."""
        counts: Dict[int, int] = {}
        for pattern in self.patterns:
            counts[pattern.depth] = counts.get(pattern.depth, 0) + 1
        return counts


def resolve_node_name(text: str, start: int, lookback: int = DEFAULT_NAME_LOOKBACK) -> str:
    """
    Find the key naming the structure that opens at ``start``.

    Looks at most ``lookback`` characters back. The last ``}`` or ``]`` in
    that window bounds the search; the text between the last two quotes
    after it is the name. Returns empty text when nothing qualifies, e.g.
    for the second element of an array of objects.
    """
    window_start = max(0, start - lookback)
    bound = -1
    quotes: List[int] = []

    for index in range(window_start, start):
        char = text[index]
        if char in CLOSERS:
            bound = index
        elif char == '"':
            quotes.append(index)

    if len(quotes) >= 2 and quotes[-1] > bound and quotes[-2] > bound:
        return text[quotes[-2] + 1:quotes[-1]]
    return ""


class StructuralScanner:
    """
    Single-pass bracket/quote scanner producing the pattern sequence.

    The scan state is an explicit :class:`ScanContext`; nothing survives
    on the scanner between calls.
    """

    def __init__(self, lookback: int = DEFAULT_NAME_LOOKBACK,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the scanner.

        Args:
            lookback: Characters scanned backwards to resolve node names
            logger: Optional logger instance
        """
        self.lookback = lookback
        self.logger = logger or logging.getLogger(__name__)

    def scan(self, text: str,
             cancel_token: Optional[CancellationToken] = None) -> StageOutcome:
        """
        Scan ``text`` and collect its patterns.

        Args:
            text: Preprocessed document
            cancel_token: Checked on every character

        Returns:
            Completed(ScanResult) or Cancelled
        """
        ctx = ScanContext(text=text)

        for index, char in enumerate(text):
            if is_cancelled(cancel_token):
                self.logger.info(f"Scan cancelled at offset {index}")
                return Cancelled(f"Scan cancelled at offset {index}")

            if char == '"':
                if toggles_string(text, index):
                    ctx.in_string = not ctx.in_string
            elif ctx.in_string:
                continue
            elif char in OPENERS:
                self._open(ctx, index, char == "[")
            elif char in CLOSERS:
                self._close(ctx, index)

        if ctx.frames:
            self.logger.warning(f"{len(ctx.frames)} delimiter(s) left open at end of input")

        # objects close in opening order within a level, so a stable sort keeps encounter order
        patterns = sorted(ctx.patterns, key=lambda p: p.depth)
        max_depth = max((p.depth for p in patterns), default=0)
        self.logger.debug(f"Scanned {len(patterns)} pattern(s) over {max_depth + 1} level(s)")

        return Completed(ScanResult(patterns=patterns, max_depth=max_depth, rejected=ctx.rejected))

    def _open(self, ctx: ScanContext, index: int, is_array: bool) -> None:
        if ctx.frames:
            ctx.frames[-1].has_nested = True

        depth = ctx.object_depth
        element_index = 0
        if not is_array:
            element_index = ctx.bump_sibling(depth)
            ctx.object_depth += 1

        ctx.frames.append(_Frame(start=index, is_array=is_array, depth=depth,
                                 element_index=element_index))

    def _close(self, ctx: ScanContext, index: int) -> None:
        if not ctx.frames:
            ctx.rejected += 1
            return

        frame = ctx.frames.pop()
        if not frame.is_array:
            ctx.object_depth -= 1

        span = ctx.text[frame.start:index + 1]
        if not is_balanced_pair(span):
            ctx.rejected += 1
            return

        if frame.is_array and frame.has_nested:
            return

        ctx.patterns.append(Pattern(
            node_name=self._node_name(ctx, frame),
            raw_span=span,
            is_array=frame.is_array,
            depth=frame.depth,
            parent_element=self._parent_element(ctx, frame),
            element_index=frame.element_index
        ))

    def _node_name(self, ctx: ScanContext, frame: _Frame) -> str:
        name = resolve_node_name(ctx.text, frame.start, self.lookback)
        if name:
            ctx.last_names[frame.depth] = name
            return name
        # unnamed nodes reuse the most recent name seen at their depth
        return ctx.last_names.get(frame.depth, "")

    @staticmethod
    def _parent_element(ctx: ScanContext, frame: _Frame) -> int:
        if frame.depth == 0:
            return 1
        return ctx.sibling_count(frame.depth - 1) or 1
