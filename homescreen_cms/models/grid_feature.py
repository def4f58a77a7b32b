"""GridFeature model — one positioned, typed component on a screen for one segment."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow
from .carousel import Carousel
from .enums import UserType


class GridFeature(Base):
    __tablename__ = "grid_features"
    __table_args__ = (
        Index("ix_grid_features_screen_segment_order", "screen_id", "user_type", "order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    screen_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("screens.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # banner, grid, list, html, carousel, section
    # Only meaningful within (screen_id, user_type); not unique-constrained
    order: Mapped[int] = mapped_column("order", Integer, default=0, nullable=False)
    user_type: Mapped[str] = mapped_column(
        String(20), default=UserType.PRE_PAID.value, nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    carousel_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("carousels.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    carousel: Mapped[Optional[Carousel]] = relationship()
