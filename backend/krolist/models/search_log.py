"""Append-only log of interactive searches, used for daily quotas."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from krolist.models.base import Base, UUIDPrimaryKeyMixin


class SearchLog(UUIDPrimaryKeyMixin, Base):
    """One interactive search performed by a user.

    Rows are only ever inserted. The daily quota is the number of rows for a
    user since local midnight.
    """

    __tablename__ = "search_logs"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    query: Mapped[str] = mapped_column(String(2000), nullable=False)
    searched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="UTC time of the search"
    )

    __table_args__ = (
        Index("idx_search_logs_user_searched", "user_id", "searched_at"),
    )

    def __repr__(self) -> str:
        return f"<SearchLog(user_id={self.user_id}, searched_at={self.searched_at})>"
