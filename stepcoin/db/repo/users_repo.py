from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        full_name: str | None,
        phone_number: str | None = None,
        status: str = "ACTIVE",
    ) -> User:
        user = User(
            full_name=full_name,
            phone_number=phone_number,
            status=status,
        )
        session.add(user)
        await session.flush()
        return user
