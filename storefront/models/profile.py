"""
Storefront — Identity and profile models

[CONFIG DATA] — accounts and store profiles are never hard-deleted.
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import String, DateTime, func, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from storefront.db.database import Base


class Role(str, PyEnum):
    CUSTOMER = "customer"
    OWNER = "owner"
    ADMIN = "admin"


class User(Base):
    """
    Credentials for an identity. Password is null for identities that
    only ever signed in through the OAuth provider.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    oauth_provider: Mapped[str | None] = mapped_column(String(32), nullable=True)
    oauth_subject: Mapped[str | None] = mapped_column(String(128), index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Profile(Base):
    """
    One per identity; profile_id is the tenant key everywhere.
    Owners fill in the store fields, customers only customernumber.
    """
    __tablename__ = "profiles"

    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), primary_key=True
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(64), unique=True, index=True, nullable=True)
    storename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    storenumber: Mapped[str | None] = mapped_column(String(32), nullable=True)
    store_image: Mapped[str | None] = mapped_column(String(512), nullable=True)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="profile_role"), default=Role.CUSTOMER, nullable=False
    )
    customernumber: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Profile {self.profile_id} role={self.role} name={self.name}>"
