from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake_service import operators

DEFAULTS = ["Kayra", "Lynn", "Jamilla"]


async def test_defaults_until_something_is_stored(session: AsyncSession) -> None:
    assert await operators.list_operators(session, DEFAULTS) == DEFAULTS
    assert await operators.list_operators(session) == []
    assert await operators.get_current_operator(session, DEFAULTS) == "Kayra"
    assert await operators.get_current_operator(session) is None


async def test_add_operator_extends_defaults(session: AsyncSession) -> None:
    names = await operators.add_operator(session, " Devin ", DEFAULTS)
    await session.commit()

    assert names == [*DEFAULTS, "Devin"]
    assert await operators.list_operators(session, ["Other"]) == [*DEFAULTS, "Devin"]


async def test_add_operator_ignores_blank_and_duplicate(session: AsyncSession) -> None:
    assert await operators.add_operator(session, "   ", DEFAULTS) == DEFAULTS
    assert await operators.add_operator(session, "Lynn", DEFAULTS) == DEFAULTS
    assert await operators.list_operators(session) == []


async def test_replace_operators_dedupes(session: AsyncSession) -> None:
    names = await operators.replace_operators(session, ["A", " B", "A", "", "C"])
    assert names == ["A", "B", "C"]
    assert await operators.list_operators(session, DEFAULTS) == ["A", "B", "C"]


async def test_select_and_remove_operator(session: AsyncSession) -> None:
    await operators.select_operator(session, "Lynn", DEFAULTS)
    await session.commit()
    assert await operators.get_current_operator(session, DEFAULTS) == "Lynn"

    with pytest.raises(ValueError):
        await operators.select_operator(session, "Stranger", DEFAULTS)

    remaining = await operators.remove_operator(session, "Lynn", DEFAULTS)
    await session.commit()
    assert remaining == ["Kayra", "Jamilla"]
    assert await operators.get_current_operator(session, DEFAULTS) == "Kayra"


async def test_unlock_with_initial_password(session: AsyncSession) -> None:
    assert await operators.is_authenticated(session) is False
    assert await operators.unlock(session, "wrong", "20251201") is False
    assert await operators.is_authenticated(session) is False

    assert await operators.unlock(session, "20251201", "20251201") is True
    assert await operators.is_authenticated(session) is True


async def test_lock_clears_gate_and_selection(session: AsyncSession) -> None:
    await operators.unlock(session, "secret", "secret")
    await operators.select_operator(session, "Lynn", DEFAULTS)

    await operators.lock(session)
    await session.commit()

    assert await operators.is_authenticated(session) is False
    assert await operators.get_current_operator(session, DEFAULTS) == "Kayra"


async def test_change_password(session: AsyncSession) -> None:
    with pytest.raises(ValueError):
        await operators.change_password(session, "bad", "newpass", "secret")

    await operators.change_password(session, "secret", "newpass", "secret")
    await session.commit()

    assert await operators.unlock(session, "secret", "secret") is False
    assert await operators.unlock(session, "newpass", "secret") is True
