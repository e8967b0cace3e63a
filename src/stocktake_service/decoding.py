"""Byte-to-text decoding for uploaded catalog and record files."""
from __future__ import annotations

import codecs
import logging

from .errors import DecodeError

logger = logging.getLogger(__name__)

_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def sniff_encoding(data: bytes) -> tuple[str | None, int]:
    """Return the encoding announced by a byte-order mark and its length.

    ``(None, 0)`` means no mark was found.
    """

    for bom, encoding in _BOMS:
        if data.startswith(bom):
            return encoding, len(bom)
    return None, 0


def decode_bytes(data: bytes, legacy_encoding: str = "big5") -> str:
    """Decode an uploaded file into text.

    A byte-order mark wins when present. Unmarked input must be strict UTF-8,
    otherwise it is read with ``legacy_encoding`` (spreadsheet exports from
    non-Unicode locales).
    """

    encoding, offset = sniff_encoding(data)
    if encoding is not None:
        try:
            return data[offset:].decode(encoding)
        except UnicodeDecodeError as exc:
            raise DecodeError(f"File declares {encoding} but is not valid {encoding}") from exc

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("Upload is not UTF-8, falling back to %s", legacy_encoding)

    try:
        return data.decode(legacy_encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise DecodeError(f"File is neither UTF-8 nor {legacy_encoding}") from exc


__all__ = ["decode_bytes", "sniff_encoding"]
