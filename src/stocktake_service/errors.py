"""Exception types raised by the stock-take engine."""
from __future__ import annotations


class StocktakeError(Exception):
    """Base class for engine errors."""


class DecodeError(StocktakeError, ValueError):
    """Uploaded bytes could not be decoded into text."""


class CatalogParseError(StocktakeError, ValueError):
    """A catalog upload contains no usable data."""


class RestoreParseError(StocktakeError, ValueError):
    """A backup document is malformed; nothing was restored."""


class MergeRowError(StocktakeError, ValueError):
    """A merge row cannot become an inventory record."""


__all__ = [
    "StocktakeError",
    "DecodeError",
    "CatalogParseError",
    "RestoreParseError",
    "MergeRowError",
]
