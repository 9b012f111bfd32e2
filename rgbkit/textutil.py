"""Small text helpers for diagnostics and UTF-8 handling."""

from __future__ import annotations

__all__ = ["EOF", "print_char", "read_utf8_char"]

EOF = -1

_ESCAPES = {ord("\n"): "n", ord("\r"): "r", ord("\t"): "t"}


def print_char(c: int | None) -> str:
    """Render a character code for an error message.

    Printable ASCII is quoted, common control characters are escaped and
    anything else is shown as a hexadecimal byte. ``EOF`` (or ``None``)
    gives ``"EOF"``.
    """
    if c is None or c == EOF:
        return "EOF"
    if 0x20 <= c <= 0x7E:
        return f"'{chr(c)}'"
    if c in _ESCAPES:
        return f"'\\{_ESCAPES[c]}'"
    return f"0x{c & 0xFF:02X}"


def _sequence_length(lead: int) -> int:
    if lead < 0x80:
        return 1
    if 0xC2 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF4:
        return 4
    return 0


def read_utf8_char(data: bytes) -> bytes:
    """Return the bytes of the first UTF-8 character in ``data``.

    Returns an empty ``bytes`` if ``data`` is empty or does not start with a
    well-formed character (overlong forms, surrogates and truncated
    sequences are all rejected).
    """
    if not data:
        return b""
    length = _sequence_length(data[0])
    chunk = bytes(data[:length])
    if length == 0 or len(chunk) < length:
        return b""
    try:
        chunk.decode("utf-8")
    except UnicodeDecodeError:
        return b""
    return chunk