"""Quote and delimiter helpers shared by the scanner and the level builder."""

OPENERS = "{["
CLOSERS = "}]"
MATCHING = {"{": "}", "[": "]"}


def toggles_string(text: str, index: int) -> bool:
    """
    Tell whether the quote at ``index`` opens or closes a string.

    A quote is escaped when the previous character is a backslash and the
    character before that is not one: ``\\"`` stays literal while ``\\\\"``
    still terminates the string.
    """
    if index > 0 and text[index - 1] == "\\":
        return index > 1 and text[index - 2] == "\\"
    return True


def is_balanced_pair(span: str) -> bool:
    """Check that a span starts and ends with a matching delimiter pair."""
    return len(span) >= 2 and MATCHING.get(span[0]) == span[-1]


def mask_nested_spans(span: str) -> str:
    """
    Blank out every balanced sub-span nested inside ``span``.

    Only the outermost delimiters and the pattern's own key/value text
    stay visible, so field extraction never sees a child's fields.
    """
    chars = list(span)
    level = -1
    open_at = 0
    in_string = False

    for index, char in enumerate(chars):
        if char == '"':
            if toggles_string(span, index):
                in_string = not in_string
            continue
        if in_string:
            continue
        if char in OPENERS:
            level += 1
            if level == 1:
                open_at = index
        elif char in CLOSERS:
            level -= 1
            if level == 0:
                for blank in range(open_at, index + 1):
                    chars[blank] = " "

    return "".join(chars)
