"""Operator list, current operator selection and the access gate."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import check_password_hash, generate_password_hash

from .models import AppState, Operator

CURRENT_OPERATOR_KEY = "current_operator"
AUTHENTICATED_KEY = "authenticated"
PASSWORD_HASH_KEY = "access_password_hash"


async def _get_state(session: AsyncSession, key: str) -> str | None:
    entry = await session.get(AppState, key)
    return entry.value if entry is not None else None


async def _set_state(session: AsyncSession, key: str, value: str | None) -> None:
    entry = await session.get(AppState, key)
    if value is None:
        if entry is not None:
            await session.delete(entry)
    elif entry is None:
        session.add(AppState(key=key, value=value))
    else:
        entry.value = value
    await session.flush()


def _clean_names(names: Sequence[str]) -> list[str]:
    cleaned: list[str] = []
    for name in names:
        candidate = name.strip()
        if candidate and candidate not in cleaned:
            cleaned.append(candidate)
    return cleaned


async def _stored_operators(session: AsyncSession) -> list[str]:
    result = await session.execute(select(Operator.name).order_by(Operator.position))
    return list(result.scalars().all())


async def list_operators(session: AsyncSession, defaults: Sequence[str] = ()) -> list[str]:
    """Stored operator names, or ``defaults`` while nothing has been stored."""

    stored = await _stored_operators(session)
    return stored or _clean_names(defaults)


async def replace_operators(session: AsyncSession, names: Sequence[str]) -> list[str]:
    cleaned = _clean_names(names)
    await session.execute(delete(Operator))
    for position, name in enumerate(cleaned):
        session.add(Operator(name=name, position=position))
    await session.flush()
    return cleaned


async def add_operator(
    session: AsyncSession, name: str, defaults: Sequence[str] = ()
) -> list[str]:
    """Append ``name``; blank names and names already listed are ignored."""

    current = await list_operators(session, defaults)
    candidate = name.strip()
    if not candidate or candidate in current:
        return current
    if not await _stored_operators(session):
        # materialize the defaults before extending them
        current = await replace_operators(session, current)
    result = await session.execute(select(func.max(Operator.position)))
    highest = result.scalar_one_or_none()
    session.add(Operator(name=candidate, position=(highest if highest is not None else -1) + 1))
    await session.flush()
    return [*current, candidate]


async def remove_operator(
    session: AsyncSession, name: str, defaults: Sequence[str] = ()
) -> list[str]:
    current = await list_operators(session, defaults)
    remaining = await replace_operators(session, [entry for entry in current if entry != name])
    if await _get_state(session, CURRENT_OPERATOR_KEY) == name:
        await _set_state(session, CURRENT_OPERATOR_KEY, None)
    return remaining


async def get_current_operator(
    session: AsyncSession, defaults: Sequence[str] = ()
) -> str | None:
    """The selected operator, falling back to the first listed one."""

    selected = await _get_state(session, CURRENT_OPERATOR_KEY)
    if selected:
        return selected
    operators = await list_operators(session, defaults)
    return operators[0] if operators else None


async def select_operator(
    session: AsyncSession, name: str, defaults: Sequence[str] = ()
) -> str:
    candidate = name.strip()
    if candidate not in await list_operators(session, defaults):
        raise ValueError(f"Unknown operator: {candidate}")
    await _set_state(session, CURRENT_OPERATOR_KEY, candidate)
    return candidate


async def _password_hash(session: AsyncSession, initial_password: str) -> str:
    stored = await _get_state(session, PASSWORD_HASH_KEY)
    if stored:
        return stored
    hashed = generate_password_hash(initial_password)
    await _set_state(session, PASSWORD_HASH_KEY, hashed)
    return hashed


async def is_authenticated(session: AsyncSession) -> bool:
    return await _get_state(session, AUTHENTICATED_KEY) == "true"


async def unlock(session: AsyncSession, password: str, initial_password: str) -> bool:
    hashed = await _password_hash(session, initial_password)
    if not password or not check_password_hash(hashed, password):
        return False
    await _set_state(session, AUTHENTICATED_KEY, "true")
    return True


async def lock(session: AsyncSession) -> None:
    """Close the access gate and drop the operator selection."""

    await _set_state(session, AUTHENTICATED_KEY, None)
    await _set_state(session, CURRENT_OPERATOR_KEY, None)


async def change_password(
    session: AsyncSession, old_password: str, new_password: str, initial_password: str
) -> None:
    hashed = await _password_hash(session, initial_password)
    if not check_password_hash(hashed, old_password):
        raise ValueError("Current password is incorrect")
    if not new_password:
        raise ValueError("New password must not be empty")
    await _set_state(session, PASSWORD_HASH_KEY, generate_password_hash(new_password))


__all__ = [
    "list_operators",
    "replace_operators",
    "add_operator",
    "remove_operator",
    "get_current_operator",
    "select_operator",
    "is_authenticated",
    "unlock",
    "lock",
    "change_password",
]
