"""Listing model for curated products whose prices are revalidated."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from krolist.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from krolist.models.price_history import ListingPriceHistory


class Listing(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A stored product listing on an external store.

    Listings are created by the admin CMS. This subsystem only reads them
    and writes back refreshed prices.
    """

    __tablename__ = "krolist_products"

    product_url: Mapped[str] = mapped_column(String(2000), nullable=False, comment="Link to product on store")
    store: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        index=True,
        comment="Store key used to pick extraction patterns (amazon, noon, ...)"
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    # Pricing
    current_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    original_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Original/list price before discounts"
    )
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="SAR")

    # Curation
    collection_title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_checked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last time the price was revalidated"
    )

    __table_args__ = (
        Index("idx_krolist_products_featured_collection", "is_featured", "collection_title"),
    )

    price_history: Mapped[list["ListingPriceHistory"]] = relationship(
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingPriceHistory.recorded_at.desc()"
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, title='{self.title[:50]}', store={self.store})>"
