"""User model mirrored from the auth provider for role checks."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from krolist.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Application user. Credentials live with the auth provider."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False, index=True,
        comment="User email address (unique)"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
        comment="Whether user account is active"
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
        comment="Whether user has admin privileges"
    )
