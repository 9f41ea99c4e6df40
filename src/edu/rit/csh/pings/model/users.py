"""User data models.

Provides the SQLAlchemy model for users who have signed in through Google or CSH single sign-on,
keyed internally by a ULID and externally by the (provider, subject) pair.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column
from ulid import ULID

from edu.rit.csh.pings.auth.profile import UserProfile
from edu.rit.csh.pings.model.base import Base, guidpk, str512


class User(Base):
    """A person who has signed in at least once.

    The same person signing in with both providers is two users; accounts are not linked.
    """

    __tablename__ = "users"

    guid: Mapped[guidpk]
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    subject: Mapped[str512]
    email: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_login_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("idx_users_provider_subject", "provider", "subject", unique=True),
        Index("idx_users_email", "email"),
    )


def upsert_user_stmt(profile: UserProfile, now: datetime):
    """Create PostgreSQL upsert statement for a user signing in.

    Inserts a new user or refreshes the profile fields and last login time of the existing
    user with the same provider and subject, returning the user's GUID.
    """
    return (
        insert(User)
        .values(
            [
                {
                    "guid": str(ULID()),
                    "provider": profile.provider,
                    "subject": profile.subject,
                    "email": profile.email,
                    "name": profile.name,
                    "username": profile.username,
                    "created_at": now,
                    "last_login_at": now,
                }
            ]
        )
        .on_conflict_do_update(
            index_elements=["provider", "subject"],
            set_={
                "email": profile.email,
                "name": profile.name,
                "username": profile.username,
                "last_login_at": now,
            },
        )
        .returning(User.guid)
    )


async def save_user(
    database_session_maker: async_sessionmaker[AsyncSession],
    profile: UserProfile,
    now: Optional[datetime] = None,
) -> str:
    """Record a sign in and return the user's GUID."""
    if now is None:
        now = datetime.now(timezone.utc)
    async with database_session_maker() as database_session:
        async with database_session.begin():
            result = await database_session.execute(upsert_user_stmt(profile, now))
            return result.scalar_one()
