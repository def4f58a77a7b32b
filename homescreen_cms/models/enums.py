"""Closed value sets stored as strings on the layout tables."""

from enum import Enum


class UserType(str, Enum):
    """Subscriber segment. Every write path stores one of these two values."""

    PRE_PAID = "PRE_PAID"
    POST_PAID = "POST_PAID"


class ComponentType(str, Enum):
    BANNER = "banner"
    GRID = "grid"
    LIST = "list"
    HTML = "html"
    CAROUSEL = "carousel"
    SECTION = "section"
