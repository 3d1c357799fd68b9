"""Key/value field tokenizer.

A small character-class state machine that pulls ``"key": value`` fragments
out of a pattern whose nested structures have already been blanked out.

Transition table (``ws`` = whitespace, ``close`` = ``}`` or ``]``)::

    state          input              action                      next
    -------------  -----------------  --------------------------  -------------
    SEEK_KEY       "                  start key                   KEY
    SEEK_KEY       anything else      skip                        SEEK_KEY
    KEY            \\                 keep char                   KEY_ESCAPE
    KEY            "                  end key                     AFTER_KEY
    KEY            other              append                      KEY
    KEY_ESCAPE     any                append                      KEY
    AFTER_KEY      ws                 skip                        AFTER_KEY
    AFTER_KEY      :                  -                           SEEK_VALUE
    AFTER_KEY      "                  drop key, start new key     KEY
    AFTER_KEY      other              drop key (array element)    SEEK_KEY
    SEEK_VALUE     ws                 skip                        SEEK_VALUE
    SEEK_VALUE     "                  start quoted value          STRING
    SEEK_VALUE     , or close         emit empty value            SEEK_KEY
    SEEK_VALUE     other              start bare token            BARE
    STRING         \\                 append                      STRING_ESCAPE
    STRING         "                  append, emit                SEEK_KEY
    STRING         other              append                      STRING
    STRING_ESCAPE  any                append                      STRING
    BARE           , ws or close      emit                        SEEK_KEY
    BARE           "                  append                      BARE_QUOTED
    BARE           other              append                      BARE
    BARE_QUOTED    "                  append                      BARE
    BARE_QUOTED    other              append                      BARE_QUOTED

Reaching the end of the text inside KEY, KEY_ESCAPE, STRING, STRING_ESCAPE
or BARE_QUOTED raises :class:`FieldExtractionError`. A key still waiting for
its value at the end yields an empty value.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .types import FieldExtractionError

_WHITESPACE = " \t\r\n"
_CLOSERS = "}]"


class TokenState(Enum):
    """States of the field tokenizer."""
    SEEK_KEY = "seek_key"
    KEY = "key"
    KEY_ESCAPE = "key_escape"
    AFTER_KEY = "after_key"
    SEEK_VALUE = "seek_value"
    STRING = "string"
    STRING_ESCAPE = "string_escape"
    BARE = "bare"
    BARE_QUOTED = "bare_quoted"


_UNTERMINATED = {
    TokenState.KEY,
    TokenState.KEY_ESCAPE,
    TokenState.STRING,
    TokenState.STRING_ESCAPE,
    TokenState.BARE_QUOTED,
}


@dataclass(frozen=True)
class KeyValue:
    """One extracted field: the raw key text and the raw value text."""
    key: str
    raw_value: str
    position: int


class FieldExtractor:
    """Tokenizes the pattern's own key/value pairs."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def extract(self, text: str) -> List[KeyValue]:
        """
        Extract every ``"key": value`` fragment from ``text``.

        Args:
            text: Pattern span with nested structures masked

        Returns:
            Fields in document order; empty for literal arrays

        Raises:
            FieldExtractionError: If a key or quoted value is not terminated
        """
        fields: List[KeyValue] = []
        state = TokenState.SEEK_KEY
        key: List[str] = []
        value: List[str] = []
        key_start = 0

        def emit() -> None:
            fields.append(KeyValue(
                key=self.clean_key("".join(key)),
                raw_value="".join(value),
                position=key_start
            ))

        # the opening delimiter is never part of a field
        for index in range(1 if text[:1] in "{[" else 0, len(text)):
            char = text[index]

            if state is TokenState.SEEK_KEY:
                if char == '"':
                    key, key_start = [], index
                    state = TokenState.KEY

            elif state is TokenState.KEY:
                if char == "\\":
                    key.append(char)
                    state = TokenState.KEY_ESCAPE
                elif char == '"':
                    state = TokenState.AFTER_KEY
                else:
                    key.append(char)

            elif state is TokenState.KEY_ESCAPE:
                key.append(char)
                state = TokenState.KEY

            elif state is TokenState.AFTER_KEY:
                if char == ":":
                    value = []
                    state = TokenState.SEEK_VALUE
                elif char == '"':
                    key, key_start = [], index
                    state = TokenState.KEY
                elif char not in _WHITESPACE:
                    state = TokenState.SEEK_KEY

            elif state is TokenState.SEEK_VALUE:
                if char == '"':
                    value.append(char)
                    state = TokenState.STRING
                elif char == "," or char in _CLOSERS:
                    emit()
                    state = TokenState.SEEK_KEY
                elif char not in _WHITESPACE:
                    value.append(char)
                    state = TokenState.BARE

            elif state is TokenState.STRING:
                value.append(char)
                if char == "\\":
                    state = TokenState.STRING_ESCAPE
                elif char == '"':
                    emit()
                    state = TokenState.SEEK_KEY

            elif state is TokenState.STRING_ESCAPE:
                value.append(char)
                state = TokenState.STRING

            elif state is TokenState.BARE:
                if char == "," or char in _WHITESPACE or char in _CLOSERS:
                    emit()
                    state = TokenState.SEEK_KEY
                else:
                    value.append(char)
                    if char == '"':
                        state = TokenState.BARE_QUOTED

            elif state is TokenState.BARE_QUOTED:
                value.append(char)
                if char == '"':
                    state = TokenState.BARE

        if state in _UNTERMINATED:
            raise FieldExtractionError(
                f"Unterminated {state.value.replace('_', ' ')} starting at offset {key_start}",
                key_start
            )
        if state in (TokenState.SEEK_VALUE, TokenState.BARE):
            emit()

        return fields

    @staticmethod
    def clean_key(key: str) -> str:
        """Trim delimiter characters and whitespace around a column name."""
        return key.strip(' \t\r\n"').replace('\\"', '"')
