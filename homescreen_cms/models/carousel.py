"""Carousel and CarouselCard models — swipeable card sets owned by a grid feature."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow
from .enums import UserType


class Carousel(Base):
    __tablename__ = "carousels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_type: Mapped[str] = mapped_column(
        String(20), default=UserType.PRE_PAID.value, nullable=False
    )
    auto_play: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    interval: Mapped[int] = mapped_column(Integer, default=5000, nullable=False)  # ms
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    cards: Mapped[list["CarouselCard"]] = relationship(
        back_populates="carousel",
        cascade="all, delete-orphan",
        order_by="CarouselCard.order",
    )


class CarouselCard(Base):
    __tablename__ = "carousel_cards"
    __table_args__ = (
        Index("ix_carousel_cards_carousel_order", "carousel_id", "order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    carousel_id: Mapped[int] = mapped_column(
        ForeignKey("carousels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order: Mapped[int] = mapped_column("order", Integer, default=0, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subtitle: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    cta_text: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    cta_action: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    cta_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    background_color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    text_color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    user_type: Mapped[str] = mapped_column(
        String(20), default=UserType.PRE_PAID.value, nullable=False
    )
    # "metadata" is reserved on declarative classes
    card_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    carousel: Mapped[Carousel] = relationship(back_populates="cards")
