"""Segment Resolver — maps requested userType values onto the two stored segments.

Reads are exact-match only: a PRE_PAID request never sees POST_PAID content and
vice versa. The legacy ``ALL`` value is accepted on input for old payloads and
coerced to PRE_PAID here, and nowhere else.
"""

from typing import Optional

from ..errors import InvalidSegmentError
from ..models.enums import UserType
from ..models.grid_feature import GridFeature
from ..utils.logging import get_logger

logger = get_logger("engine.segment_resolver")

DEFAULT_SEGMENT = UserType.PRE_PAID

# Historical "both segments" sentinel; never stored.
LEGACY_ALL_SEGMENT = "ALL"

ACCEPTED_SEGMENTS = tuple(s.value for s in UserType)


def _normalize(raw) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, UserType):
        return raw.value
    if not isinstance(raw, str):
        raise InvalidSegmentError(
            f"userType must be a string, one of {', '.join(ACCEPTED_SEGMENTS)}"
        )
    value = raw.strip().upper()
    return value or None


def _coerce(value: str) -> UserType:
    if value == LEGACY_ALL_SEGMENT:
        logger.debug("legacy_segment_coerced", to=DEFAULT_SEGMENT.value)
        return DEFAULT_SEGMENT
    try:
        return UserType(value)
    except ValueError:
        raise InvalidSegmentError(
            f"Invalid userType '{value}'. Accepted values: "
            f"{', '.join(ACCEPTED_SEGMENTS)} (legacy {LEGACY_ALL_SEGMENT} is treated as "
            f"{DEFAULT_SEGMENT.value})"
        ) from None


def resolve_read_segment(raw) -> UserType:
    """Segment for a rendered read. Blank input defaults to PRE_PAID."""
    value = _normalize(raw)
    if value is None:
        return DEFAULT_SEGMENT
    return _coerce(value)


def resolve_write_segment(raw) -> UserType:
    """Segment stored on a feature, carousel or card. Same rules as reads."""
    value = _normalize(raw)
    if value is None:
        return DEFAULT_SEGMENT
    return _coerce(value)


def resolve_filter_segment(raw) -> Optional[UserType]:
    """Optional segment filter for admin listings; blank or ALL means unfiltered."""
    value = _normalize(raw)
    if value is None or value == LEGACY_ALL_SEGMENT:
        return None
    return _coerce(value)


def segment_predicate(segment: UserType):
    """Exact-match clause applied to every segment-scoped feature query."""
    return GridFeature.user_type == segment.value
