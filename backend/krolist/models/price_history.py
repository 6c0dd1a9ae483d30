"""Price history tracking for listings."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from krolist.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from krolist.models.listing import Listing


class ListingPriceHistory(UUIDPrimaryKeyMixin, Base):
    """Historical price points recorded when a refresh changes a price."""

    __tablename__ = "krolist_price_history"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("krolist_products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    original_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="SAR")
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="page",
        comment="Source of price data: 'paapi' or 'page'"
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_krolist_price_history_product_recorded", "product_id", "recorded_at"),
    )

    listing: Mapped["Listing"] = relationship(back_populates="price_history")

    def __repr__(self) -> str:
        return f"<ListingPriceHistory(product_id={self.product_id}, price={self.price}, recorded_at={self.recorded_at})>"
