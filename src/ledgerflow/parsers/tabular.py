"""
Delimited-text decoding shared by all CSV-style parsers.

Institution agnostic: no header inference, callers pick the header row.
"""

import codecs
import logging
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = ";"
FALLBACK_ENCODING = "windows-1252"


def decode_bytes(raw: Union[bytes, str], preferred_encoding: Optional[str] = None) -> str:
    """
    Decode an export file to text.

    A UTF-8 BOM forces utf-8, otherwise valid UTF-8 is kept as such and
    anything else is read with the preferred (or windows-1252) encoding.
    French bank exports are commonly windows-1252.

    Args:
        raw: File content; str input only has its BOM removed
        preferred_encoding: Encoding used when the content is not UTF-8

    Returns:
        Decoded text without BOM
    """
    if isinstance(raw, str):
        return raw.lstrip("\ufeff")

    if raw.startswith(codecs.BOM_UTF8):
        return raw[len(codecs.BOM_UTF8):].decode("utf-8", errors="replace")

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        encoding = preferred_encoding or FALLBACK_ENCODING
        logger.debug(f"Content is not UTF-8, decoding as {encoding}")
        return raw.decode(encoding, errors="replace")


def split_line(line: str, delimiter: str = DEFAULT_DELIMITER) -> List[str]:
    """
    Split one line into trimmed fields.

    Quotes toggle a literal section where the delimiter is not a separator;
    a doubled quote inside quotes is a literal quote. An unterminated quote
    runs to the end of the line.
    """
    fields = []
    current = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current).strip())
    return fields


def parse_delimited(text: str, delimiter: str = DEFAULT_DELIMITER) -> List[List[str]]:
    """
    Split delimited text into rows of trimmed string fields.

    Blank lines are dropped. Never raises.

    Example:
        >>> parse_delimited('a;"b;c"\\n\\n')
        [['a', 'b;c']]
    """
    rows = []
    for line in text.splitlines():
        if not line.strip():
            continue
        rows.append(split_line(line, delimiter))
    return rows
