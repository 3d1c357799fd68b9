"""Scalar cell normalization and locale-aware value classification."""

import logging
import os
import re
from functools import lru_cache
from typing import Any, Callable, Optional, Tuple

from babel import Locale, UnknownLocaleError
from babel.numbers import NumberFormatError, get_decimal_symbol, parse_decimal

from .models.options import DEFAULT_LOCALE
from .types import ScalarKind

NumericPredicate = Callable[[str, str], bool]

# also accepts exotic forms such as -.123 or ,5
_NUMERIC_SHAPE_RE = re.compile(r"^-?[.,]?\d+([.,]?\d+)?$")
_INTEGER_RE = re.compile(r"^-?\d+$")
_LEADING_ZERO_RE = re.compile(r"^-?0\d+$")
_BOOLEAN_WORDS = {"true", "false", "oui", "non"}
_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "t": "\t",
    "r": "\r",
}


@lru_cache(maxsize=32)
def _locale_data(locale: str) -> Tuple[Locale, str]:
    try:
        parsed = Locale.parse(locale.replace("-", "_"))
    except (UnknownLocaleError, ValueError) as e:
        raise ValueError(f"Unknown locale '{locale}': {e}") from e
    return parsed, get_decimal_symbol(parsed)


def is_numeric_in_locale(token: str, locale: str) -> bool:
    """
    Default numeric predicate.

    ``.`` and ``,`` are both read as the decimal separator of ``locale``, so
    ``1,5`` and ``1.5`` are numeric everywhere while ``1.2.3`` never is.
    """
    if not _NUMERIC_SHAPE_RE.match(token):
        return False

    parsed, decimal_symbol = _locale_data(locale)
    other = "," if decimal_symbol == "." else "."
    try:
        parse_decimal(token.replace(other, decimal_symbol), locale=parsed)
    except NumberFormatError:
        return False
    return True


def unescape(text: str) -> str:
    """
    Resolve the escape sequences of a quoted JSON value.

    ``\\n`` becomes the platform line separator; unknown sequences are
    kept verbatim.
    """
    if "\\" not in text:
        return text

    out = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\" and index + 1 < len(text):
            follower = text[index + 1]
            if follower == "n":
                out.append(os.linesep)
            elif follower in _ESCAPES:
                out.append(_ESCAPES[follower])
            else:
                out.append(char + follower)
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


class ValueNormalizer:
    """
    Turns raw field text into cell text and decides quoting on export.

    Cells are always stored as text; classification only drives how a value
    is rendered when tables are written back out as JSON.
    """

    def __init__(self, locale: str = DEFAULT_LOCALE,
                 numeric_predicate: Optional[NumericPredicate] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the normalizer.

        Args:
            locale: Locale passed to the numeric predicate
            numeric_predicate: ``(token, locale) -> bool``; defaults to Babel
            logger: Optional logger instance
        """
        self.locale = locale
        self.numeric_predicate = numeric_predicate or is_numeric_in_locale
        self.logger = logger or logging.getLogger(__name__)

        if numeric_predicate is None:
            _locale_data(locale)

    def normalize_cell(self, raw_value: str) -> str:
        """
        Convert a raw field value into its cell text.

        One layer of quoting is stripped and escapes are resolved; ``null``
        and empty values become empty text.
        """
        value = raw_value.strip()
        if value.endswith(","):
            value = value[:-1].rstrip()
        if not value or value == "null":
            return ""

        if value.startswith('"'):
            inner = value[1:-1] if len(value) >= 2 and value.endswith('"') else value[1:]
            return unescape(inner)
        return value

    def is_numeric(self, value: str) -> bool:
        """Check the value against the numeric predicate."""
        return self.numeric_predicate(value.strip(), self.locale)

    @staticmethod
    def is_integer(value: str) -> bool:
        """Plain integers without separators; ``007`` stays text."""
        value = value.strip()
        return bool(_INTEGER_RE.match(value)) and not _LEADING_ZERO_RE.match(value)

    @staticmethod
    def is_boolean(value: str) -> bool:
        """Recognize boolean words, case-insensitively."""
        value = value.strip()
        return len(value) <= 5 and value.lower() in _BOOLEAN_WORDS

    def classify(self, value: str) -> ScalarKind:
        """
        Classify a cell value.

        Args:
            value: Cell text

        Returns:
            ScalarKind describing how the value may be rendered
        """
        if not value:
            return ScalarKind.EMPTY
        if self.is_numeric(value):
            return ScalarKind.INTEGER if self.is_integer(value) else ScalarKind.NUMERIC
        if self.is_boolean(value):
            return ScalarKind.BOOLEAN
        return ScalarKind.TEXT

    def to_json_value(self, value: str, handle_numerics: bool = True) -> Any:
        """
        Map a cell onto the JSON value it should be written as.

        Integers and booleans are unquoted and empty cells become null when
        ``handle_numerics`` is set; everything else stays a string. Decimal
        numbers stay quoted since their separator is locale dependent.
        """
        if not handle_numerics:
            return value

        kind = self.classify(value)
        if kind is ScalarKind.EMPTY:
            return None
        if kind is ScalarKind.INTEGER:
            return int(value)
        if kind is ScalarKind.BOOLEAN and value.lower() in ("true", "false"):
            return value.lower() == "true"
        return value
