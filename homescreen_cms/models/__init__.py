"""SQLAlchemy models package."""

from .base import Base
from .carousel import Carousel, CarouselCard
from .enums import ComponentType, UserType
from .grid_feature import GridFeature
from .screen import Screen

__all__ = [
    "Base",
    "Carousel",
    "CarouselCard",
    "ComponentType",
    "GridFeature",
    "Screen",
    "UserType",
]
