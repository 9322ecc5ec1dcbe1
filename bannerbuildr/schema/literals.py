"""JavaScript string literal formatting.

Every value written into Dynamic.js goes through :func:`format_js_string`.
Escaping is taken from canonical JSON string encoding (valid JS string
syntax for backslashes, quotes, newlines and control characters) and then
re-delimited with single quotes, the convention the banner templates use:

    'Big Sale'          -> 'Big Sale'
    It's "50%" off      -> 'It\\'s "50%" off'
    C:\\path            -> 'C:\\\\path'
    None / NaN          -> ''
"""

import json
import math
import re
from typing import Any

_ESCAPE_TOKEN = re.compile(r"\\.|.", re.DOTALL)

# Valid inside JSON strings but historically line terminators in JS source
_LINE_SEPARATORS = frozenset({chr(0x2028), chr(0x2029)})

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}

_DECODE_TOKEN = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)",
    re.DOTALL,
)


def is_missing(value: Any) -> bool:
    """True for None and float NaN (what pandas hands back for blanks)."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def to_text(value: Any) -> str:
    """Stringify a row value; missing values become the empty string."""
    if is_missing(value):
        return ""
    return value if isinstance(value, str) else str(value)


def format_js_string(value: Any) -> str:
    """Return a single-quoted JS string literal evaluating to ``str(value)``."""
    encoded = json.dumps(to_text(value), ensure_ascii=False)[1:-1]
    parts = []
    for token in _ESCAPE_TOKEN.findall(encoded):
        if token == '\\"':
            parts.append('"')
        elif token == "'":
            parts.append("\\'")
        elif token in _LINE_SEPARATORS:
            parts.append("\\u%04x" % ord(token))
        else:
            parts.append(token)
    return "'" + "".join(parts) + "'"


def _decode_escape(match: re.Match) -> str:
    esc = match.group(1)
    if esc in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[esc]
    if esc in ("\n", "\r\n", "\r"):
        return ""  # line continuation
    if esc.startswith("u{"):
        return chr(int(esc[2:-1], 16))
    if esc[0] in "ux" and len(esc) > 1:
        return chr(int(esc[1:], 16))
    return esc


def parse_js_string(literal: str) -> str:
    """Decode a single- or double-quoted JS string literal.

    Inverse of :func:`format_js_string`; also accepts the double-quoted
    literals templates ship with.  Raises ``ValueError`` for anything that
    is not a complete string literal.
    """
    text = literal.strip()
    if len(text) < 2 or text[0] not in "'\"" or text[-1] != text[0]:
        raise ValueError(f"Not a JS string literal: {literal!r}")
    decoded = _DECODE_TOKEN.sub(_decode_escape, text[1:-1])
    # Re-join surrogate pairs produced by escaped astral characters
    try:
        return decoded.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError:
        return decoded


def string_literal_end(text: str, start: int = 0) -> int:
    """Index just past the string literal opening at ``text[start]``.

    Returns -1 when the literal is not terminated on this text.
    """
    quote = text[start]
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return -1
