from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError, ValidationError
from ..models.user import User

# Columns a patch may touch; identity columns are never patched
UPDATABLE_USER_FIELDS = frozenset(
    {"name", "organization", "role", "status", "last_login", "updated_at", "updated_by"}
)


class UserRepository:
    """SQLAlchemy-backed user store used by the access-control services."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        role: str = "guest",
        status: str = "active",
        name: str | None = None,
        organization: str | None = None,
        source: str | None = None,
    ) -> User:
        user = User(
            email=email,
            role=role,
            status=status,
            name=name,
            organization=organization,
            source=source,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_user(self, email: str, patch: dict[str, Any]) -> User:
        unknown = sorted(set(patch) - UPDATABLE_USER_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown user fields: {', '.join(unknown)}")

        user = await self.get_user_by_email(email)
        if user is None:
            raise NotFoundError(f"User not found: {email}")

        for field, value in patch.items():
            setattr(user, field, value)

        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def get_all_users(
        self,
        status: str | None = None,
        role: str | None = None,
    ) -> list[User]:
        query = select(User)

        conditions = []
        if status is not None:
            conditions.append(User.status == status)
        if role is not None:
            conditions.append(User.role == role)

        if conditions:
            query = query.where(and_(*conditions))

        result = await self.session.execute(query.order_by(User.email))
        return list(result.scalars().all())
