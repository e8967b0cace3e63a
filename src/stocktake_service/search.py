"""Autocomplete for manual PartID entry."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog
from .models import MasterItem


async def autocomplete(
    session: AsyncSession, term: str, *, limit: int = 5, min_length: int = 2
) -> Sequence[MasterItem]:
    """Catalog items whose PartID or VendorPN contains ``term``, case-insensitively.

    Terms shorter than ``min_length`` return nothing. Debouncing and dropping
    superseded results is left to the caller.
    """

    if not term or len(term) < min_length:
        return []
    needle = term.lower()
    return await catalog.filter_items(
        session,
        lambda item: needle in item.part_id.lower() or needle in (item.vendor_pn or "").lower(),
        limit=limit,
    )


__all__ = ["autocomplete"]
