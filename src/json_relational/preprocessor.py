"""Input normalization ahead of the structural scan."""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

_SURROGATE_PAIR_RE = re.compile(r"\\u(d[89ab][0-9a-f]{2})\\u(d[c-f][0-9a-f]{2})", re.IGNORECASE)
_UNICODE_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")
_START_RE = re.compile(r"^[{\[]")
_END_RE = re.compile(r"[}\]]$")
# JS sources such as Twitter archives: window.YTD.tweets.part0 = [ ... ]
_ASSIGNMENT_RE = re.compile(r"^([^{\[=]*?)\s*=\s*(?=[{\[])")
_DECLARATION_RE = re.compile(r"^(?:var|let|const)\s+")
_OBJECT_ID_RE = re.compile(r'ObjectId\(\s*"([a-zA-Z0-9]+)"\s*\)')
_OID_RE = re.compile(r'\{\s*"\$oid"\s*:\s*("[a-zA-Z0-9_]+")\s*\}')


@dataclass
class PreprocessedDocument:
    """Normalized text plus what the preprocessor learned about it."""
    text: str
    prefix: str
    starts_valid: bool
    ends_valid: bool
    bson_rewrites: int = 0

    @property
    def is_valid(self) -> bool:
        """Both boundary tests passed."""
        return self.starts_valid and self.ends_valid


def _escape_decoded(char: str) -> str:
    # keep string boundaries intact when an escape decodes to a delimiter of the grammar
    if char in ('"', "\\"):
        return "\\" + char
    return char


def decode_unicode_escapes(text: str) -> str:
    """
    Replace ``\\uXXXX`` escapes with the characters they encode.

    Surrogate pairs are combined; lone surrogates are left untouched.
    Decoded quotes and backslashes are re-escaped.
    """
    def pair(match: "re.Match[str]") -> str:
        high = int(match.group(1), 16)
        low = int(match.group(2), 16)
        return chr(0x10000 + ((high - 0xD800) << 10) + (low - 0xDC00))

    def single(match: "re.Match[str]") -> str:
        code = int(match.group(1), 16)
        if 0xD800 <= code <= 0xDFFF:
            return match.group(0)
        return _escape_decoded(chr(code))

    text = _SURROGATE_PAIR_RE.sub(pair, text)
    return _UNICODE_ESCAPE_RE.sub(single, text)


def rewrite_bson(text: str) -> Tuple[str, int]:
    """
    Inline MongoDB extended-JSON constructs.

    ``ObjectId("X")`` and ``{ "$oid": "X" }`` both become ``"X"``.

    Returns:
        Tuple of (rewritten_text, number_of_substitutions)
    """
    text, object_ids = _OBJECT_ID_RE.subn(r'"\1"', text)
    text, oids = _OID_RE.subn(r"\1", text)
    return text, object_ids + oids


class Preprocessor:
    """
    Prepares raw text for the structural scanner.

    Decodes unicode escapes, trims, strips a JavaScript assignment prefix,
    runs the boundary checks and optionally rewrites BSON constructs.
    """

    def __init__(self, bson: bool = False, logger: Optional[logging.Logger] = None):
        """
        Initialize the preprocessor.

        Args:
            bson: Rewrite BSON extended constructs
            logger: Optional logger instance
        """
        self.bson = bson
        self.logger = logger or logging.getLogger(__name__)

    def process(self, raw: str) -> PreprocessedDocument:
        """
        Normalize ``raw`` and determine whether it can be scanned.

        Args:
            raw: Document text

        Returns:
            PreprocessedDocument with the text to scan
        """
        text = decode_unicode_escapes(raw).strip()
        prefix = ""

        starts_valid = bool(_START_RE.match(text))
        if not starts_valid:
            match = _ASSIGNMENT_RE.match(text)
            if match and match.group(1).strip():
                prefix = _DECLARATION_RE.sub("", match.group(1).strip())
                text = text[match.end():].rstrip()
                if text.endswith(";"):
                    text = text[:-1].rstrip()
                starts_valid = True
                self.logger.debug(f"Stripped assignment prefix '{prefix}'")

        ends_valid = bool(_END_RE.search(text))

        rewrites = 0
        if self.bson:
            text, rewrites = rewrite_bson(text)
            self.logger.debug(f"Applied {rewrites} BSON rewrite(s)")

        return PreprocessedDocument(
            text=text,
            prefix=prefix,
            starts_valid=starts_valid,
            ends_valid=ends_valid,
            bson_rewrites=rewrites
        )
