"""Shell quoting utilities for arbitrary path bytes.

Manifest entries store original paths in a form a POSIX shell (bash,
zsh, ksh) turns back into the exact original byte sequence, even when
the path is not valid UTF-8.
"""

import os
from pathlib import Path

_SINGLE_QUOTE = 0x27


def _needs_octal(byte: int) -> bool:
    """Control characters and everything outside 7-bit printable ASCII."""
    return byte < 0x20 or byte >= 0x7F


def escape_path(path: str | bytes | Path) -> str:
    """Quote a path as a shell word.

    Printable ASCII is wrapped in single quotes. Runs of other bytes are
    emitted as ``$'\\NNN'`` octal sequences and a single quote becomes
    ``'\\''``. The result is pure ASCII.

    Args:
        path: Path as text (surrogate-escaped), raw bytes or Path.

    Returns:
        Shell-quoted representation, e.g. ``'fo'$'\\200''o'`` for b"fo\\x80o".
    """
    raw = path if isinstance(path, bytes) else os.fsencode(path)

    parts = ["'"]
    encoding = False
    for byte in raw:
        if _needs_octal(byte):
            if not encoding:
                parts.append("'$'")
                encoding = True
            parts.append(f"\\{byte:03o}")
            continue
        if encoding:
            parts.append("''")
            encoding = False
        if byte == _SINGLE_QUOTE:
            parts.append("'\\''")
        else:
            parts.append(chr(byte))
    parts.append("'")
    return "".join(parts)


def unescape_path(quoted: str) -> bytes:
    """Reverse :func:`escape_path`, returning the original bytes.

    Understands the subset of shell syntax escape_path emits: single
    quoted strings, ``$'...'`` strings with octal escapes, and
    backslash-escaped characters outside quotes.

    Args:
        quoted: Shell-quoted text.

    Returns:
        Original path bytes.

    Raises:
        ValueError: On unterminated quotes or unsupported escapes.
    """
    out = bytearray()
    i = 0
    length = len(quoted)

    while i < length:
        char = quoted[i]
        if char == "'":
            end = quoted.find("'", i + 1)
            if end == -1:
                msg = f"Unterminated single quote at offset {i}"
                raise ValueError(msg)
            out += os.fsencode(quoted[i + 1 : end])
            i = end + 1
        elif char == "$" and quoted.startswith("$'", i):
            i = _read_ansi_c(quoted, i + 2, out)
        elif char == "\\":
            if i + 1 >= length:
                msg = "Trailing backslash"
                raise ValueError(msg)
            out += os.fsencode(quoted[i + 1])
            i += 2
        else:
            out += os.fsencode(char)
            i += 1

    return bytes(out)


def _read_ansi_c(quoted: str, start: int, out: bytearray) -> int:
    """Decode a ``$'...'`` body starting after the opening quote.

    Returns:
        Offset just past the closing quote.
    """
    i = start
    length = len(quoted)
    while i < length:
        char = quoted[i]
        if char == "'":
            return i + 1
        if char != "\\":
            out += os.fsencode(char)
            i += 1
            continue

        digits = ""
        j = i + 1
        while j < length and len(digits) < 3 and quoted[j] in "01234567":
            digits += quoted[j]
            j += 1
        if digits:
            out.append(int(digits, 8) & 0xFF)
            i = j
        elif j < length and quoted[j] in "\\'\"":
            out += quoted[j].encode()
            i = j + 1
        else:
            msg = f"Unsupported escape at offset {i}"
            raise ValueError(msg)

    msg = f"Unterminated $'...' string at offset {start - 2}"
    raise ValueError(msg)
