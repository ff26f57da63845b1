"""Persistence helpers for Telegram users."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from . import User


async def upsert_user(
    session: AsyncSession,
    chat_id: int,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> User:
    """Create a user on first contact, or refresh the stored names when they change."""
    user = await session.get(User, chat_id)

    if user is None:
        now = datetime.now(timezone.utc)
        user = User(
            chat_id=chat_id,
            first_name=first_name,
            last_name=last_name,
            created_at=now,
            updated_at=now,
        )
        session.add(user)
        return user

    changed = False
    if first_name is not None and user.first_name != first_name:
        user.first_name = first_name
        changed = True
    if last_name is not None and user.last_name != last_name:
        user.last_name = last_name
        changed = True

    if changed:
        user.updated_at = datetime.now(timezone.utc)
        await session.flush()

    return user


async def set_preferred_translation(session: AsyncSession, chat_id: int, translation: str) -> User:
    user = await upsert_user(session, chat_id)
    user.preferred_translation = translation.upper()
    user.updated_at = datetime.now(timezone.utc)
    await session.flush()
    return user
