"""Escaped-hex text encoding for moving raw bytes through text channels"""

import re
import string

_ESCAPE_MARKER = "\\x"
_ESCAPED_RE = re.compile(r'"((?:\\x[0-9a-fA-F]{2})*)"')


def encode(data: bytes) -> str:
    """Renders bytes as a double-quoted string literal of \\xNN escapes,
    e.g. b"A\\xff" -> '"\\x41\\xff"'"""

    return '"' + "".join(f"{_ESCAPE_MARKER}{b:02x}" for b in data) + '"'


def decode(hex_text: str) -> bytes:
    """Parses pairs of hex digits into bytes, e.g. "41ff" -> b"A\\xff".

    A trailing unpaired digit is dropped. Raises ValueError if any pair
    is not two hex digits.
    """

    usable = hex_text[: len(hex_text) - len(hex_text) % 2]
    if bad := next((c for c in usable if c not in string.hexdigits), None):
        raise ValueError(f"Bad hex digit {bad!r} in {hex_text!r}")
    return bytes(int(usable[i : i + 2], 16) for i in range(0, len(usable), 2))


def strip_escapes(text: str) -> str:
    """Reduces encode() output to its bare hex digits"""

    return text.strip('"').replace(_ESCAPE_MARKER, "")


def unescape(text: str) -> bytes:
    """Exact inverse of encode()"""

    if not (match := _ESCAPED_RE.fullmatch(text)):
        raise ValueError(f"Not escaped-hex text: {text!r}")
    return decode(strip_escapes(match.group(0)))
