"""Splitting and quoting of single delimited-text lines."""
from __future__ import annotations

QUOTE = '"'


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith(QUOTE) and value.endswith(QUOTE):
        return value[1:-1].replace(QUOTE * 2, QUOTE)
    return value


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one line into trimmed, unquoted fields.

    The delimiter only separates fields outside a quoted span. A doubled quote
    inside a span is a literal quote. The field after the last delimiter is
    always returned, even when empty.

    >>> split_line('a,"b,c",d')
    ['a', 'b,c', 'd']
    >>> split_line('a,"b""c",d')
    ['a', 'b"c', 'd']
    """

    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in line:
        if char == QUOTE:
            # a doubled quote toggles twice, leaving the state unchanged
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    fields.append("".join(current).strip())
    return [_unquote(field) for field in fields]


def quote_field(value: str | None, delimiter: str = ",", *, force: bool = False) -> str:
    text = value or ""
    if force or delimiter in text or QUOTE in text or "\n" in text or "\r" in text:
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text


__all__ = ["split_line", "quote_field"]
