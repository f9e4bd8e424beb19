"""Reader and writer for ``key=value`` property text.

Preference files (``*.epf``), the combined preferences file and the origin
headers record all use the classic property format: ``#``/``!`` comments,
``=``/``:``/whitespace separators, backslash line continuations and
``\\uXXXX`` escapes. Output is always ASCII so that hosts reading the file
as Latin-1 see exactly what was written.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_REVERSE_ESCAPES = {"\t": "\\t", "\n": "\\n", "\r": "\\r", "\f": "\\f"}
# Only CR, LF and CRLF end a line; form feeds and Unicode separators are content
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class PropertiesFormatError(ValueError):
    """Malformed property text (e.g. a broken \\u escape)."""

    pass


def loads(text: str) -> dict[str, str]:
    """Parse property text into an insertion-ordered dictionary.

    A key defined twice keeps the position of its first definition and the
    value of its last one.
    """
    props: dict[str, str] = {}
    for line_no, line in _logical_lines(text):
        key, value = _split_entry(line)
        try:
            props[_unescape(key)] = _unescape(value)
        except PropertiesFormatError as e:
            raise PropertiesFormatError(f"line {line_no}: {e}") from e
    return props


def load_file(path: Union[str, Path], encoding: str = "utf-8") -> dict[str, str]:
    """Read a property file."""
    path = Path(path)
    with open(path, encoding=encoding, errors="replace") as f:
        content = f.read()
    try:
        return loads(content)
    except PropertiesFormatError as e:
        raise PropertiesFormatError(f"{path}: {e}") from e


def dumps(
    props: Mapping[str, str],
    comment: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> str:
    """Serialize properties to ASCII-only text.

    The first line is the (optional) comment, followed by a timestamp
    comment line and one ``key=value`` line per entry.
    """
    lines = []
    if comment is not None:
        for comment_line in comment.splitlines() or [""]:
            lines.append("#" + _escape(comment_line, is_key=False, is_comment=True))
    stamp = timestamp or datetime.now(timezone.utc)
    lines.append("#" + stamp.strftime("%a %b %d %H:%M:%S %Z %Y"))
    for key, value in props.items():
        lines.append(f"{_escape(str(key), is_key=True)}={_escape(str(value), is_key=False)}")
    return "\n".join(lines) + "\n"


def _logical_lines(text: str) -> Iterable[tuple[int, str]]:
    """Yield (line number, logical line) pairs, joining continuations."""
    physical = _LINE_BREAK.split(text)
    i = 0
    while i < len(physical):
        start = i
        line = physical[i].lstrip(_WHITESPACE)
        i += 1
        if not line or line[0] in "#!":
            continue
        while _ends_with_continuation(line) and i < len(physical):
            line = line[:-1] + physical[i].lstrip(_WHITESPACE)
            i += 1
        if _ends_with_continuation(line):
            line = line[:-1]
        yield start + 1, line


def _ends_with_continuation(line: str) -> bool:
    backslashes = len(line) - len(line.rstrip("\\"))
    return backslashes % 2 == 1


def _split_entry(line: str) -> tuple[str, str]:
    """Split a logical line into raw (still escaped) key and value."""
    key_end = len(line)
    escaped = False
    for pos, char in enumerate(line):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char in _SEPARATORS or char in _WHITESPACE:
            key_end = pos
            break

    key = line[:key_end]
    rest = line[key_end:].lstrip(_WHITESPACE)
    if rest and rest[0] in _SEPARATORS:
        rest = rest[1:].lstrip(_WHITESPACE)
    return key, rest


def _unescape(text: str) -> str:
    if "\\" not in text:
        return text

    out = []
    i = 0
    while i < len(text):
        char = text[i]
        i += 1
        if char != "\\":
            out.append(char)
            continue
        if i >= len(text):
            break
        char = text[i]
        i += 1
        if char == "u":
            digits = text[i : i + 4]
            if len(digits) < 4:
                raise PropertiesFormatError(f"Malformed \\uxxxx encoding: \\u{digits}")
            try:
                out.append(chr(int(digits, 16)))
            except ValueError:
                raise PropertiesFormatError(f"Malformed \\uxxxx encoding: \\u{digits}")
            i += 4
        else:
            out.append(_ESCAPES.get(char, char))

    result = "".join(out)
    # Rejoin UTF-16 surrogate pairs produced by consecutive \u escapes
    try:
        return result.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError:
        return result


def _escape(text: str, is_key: bool, is_comment: bool = False) -> str:
    out = []
    for pos, char in enumerate(text):
        code = ord(char)
        if is_comment:
            if 0x20 <= code <= 0x7E:
                out.append(char)
            else:
                out.append(_unicode_escape(char))
        elif char == " ":
            out.append("\\ " if pos == 0 or is_key else " ")
        elif char in _REVERSE_ESCAPES:
            out.append(_REVERSE_ESCAPES[char])
        elif char in "\\=:#!":
            out.append("\\" + char)
        elif 0x20 <= code <= 0x7E:
            out.append(char)
        else:
            out.append(_unicode_escape(char))
    return "".join(out)


def _unicode_escape(char: str) -> str:
    encoded = char.encode("utf-16-be", "surrogatepass")
    return "".join(
        f"\\u{int.from_bytes(encoded[i : i + 2], 'big'):04X}"
        for i in range(0, len(encoded), 2)
    )
