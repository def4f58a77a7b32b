"""Feature Renderer — turns persisted features into the mobile screen JSON contract.

Rendering is pure: it never touches the database and never raises on a
malformed config. Missing or mistyped values are replaced by their defaults.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from ..models import ComponentType, GridFeature, Screen, UserType

UrlResolver = Callable[[Any], Optional[str]]

DEFAULT_COLUMNS = 4
DEFAULT_INTERVAL = 4000
DEFAULT_CTA_ACTION = "navigate"
SECTION_BACKGROUND = "#1a1a2e"
SECTION_TEXT_COLOR = "#ffffff"


def _or_none(value):
    return value if value not in (None, "", [], {}) else None


def _flag(value, default: bool = False) -> bool:
    return default if value is None else bool(value)


def _dicts(value) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _columns(config: dict) -> int:
    value = config.get("columns")
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return DEFAULT_COLUMNS


def _cta(text, action, url) -> Optional[dict]:
    if not text:
        return None
    return {"text": text, "action": action or DEFAULT_CTA_ACTION, "url": _or_none(url)}


def _render_card(card, resolve_url: UrlResolver) -> dict:
    return {
        "id": card.id,
        "order": card.order,
        "imageUrl": resolve_url(card.image_url),
        "title": _or_none(card.title),
        "subtitle": _or_none(card.subtitle),
        "description": _or_none(card.description),
        "price": card.price,
        "currency": _or_none(card.currency),
        "style": {
            "backgroundColor": _or_none(card.background_color),
            "textColor": _or_none(card.text_color),
        },
        "cta": _cta(card.cta_text, card.cta_action, card.cta_url),
        "metadata": _or_none(card.card_metadata),
    }


def _render_grid_item(item: dict, resolve_url: UrlResolver) -> dict:
    cta_url = item.get("ctaUrl")
    return {
        "id": item.get("id"),
        "iconUrl": resolve_url(item.get("iconUrl")),
        "title": _or_none(item.get("title")),
        "subtitle": _or_none(item.get("subtitle")),
        "showNewTag": _flag(item.get("showNewTag")),
        "cta": {"action": DEFAULT_CTA_ACTION, "url": cta_url} if cta_url else None,
    }


def _render_banner_item(banner: dict, resolve_url: UrlResolver) -> dict:
    order = banner.get("order")
    return {
        "id": banner.get("id"),
        "order": order if isinstance(order, int) else 0,
        "imageUrl": resolve_url(banner.get("imageUrl")),
        "label": _or_none(banner.get("label")),
        "title": _or_none(banner.get("title")),
        "subtitle": _or_none(banner.get("subtitle")),
        "tag": _or_none(banner.get("tag")),
        "cta": _cta(banner.get("ctaText"), banner.get("ctaAction"), banner.get("ctaUrl")),
    }


def _carousel(feature: GridFeature, config: dict, resolve_url: UrlResolver) -> Optional[dict]:
    carousel = feature.carousel
    if carousel is None:
        return None
    cards = sorted(
        (c for c in carousel.cards if c.is_active),
        key=lambda c: (c.order, c.id),
    )
    return {
        "autoPlay": _flag(carousel.auto_play, default=True),
        "interval": carousel.interval or DEFAULT_INTERVAL,
        "items": [_render_card(c, resolve_url) for c in cards],
    }


def _grid(feature: GridFeature, config: dict, resolve_url: UrlResolver) -> dict:
    return {
        "columns": _columns(config),
        "items": [_render_grid_item(i, resolve_url) for i in _dicts(config.get("gridItems"))],
    }


def _banner(feature: GridFeature, config: dict, resolve_url: UrlResolver) -> dict:
    images = config.get("images")
    first = images[0] if isinstance(images, list) and images else None
    return {
        "imageUrl": resolve_url(first),
        "subtitle": _or_none(config.get("subtitle")),
        "showNewTag": _flag(config.get("showNewTag")),
        "cta": _cta(config.get("ctaText"), config.get("ctaAction"), config.get("ctaUrl")),
    }


def _section(feature: GridFeature, config: dict, resolve_url: UrlResolver) -> dict:
    rendered = {
        "style": {
            "backgroundColor": config.get("backgroundColor") or SECTION_BACKGROUND,
            "textColor": config.get("textColor") or SECTION_TEXT_COLOR,
        },
        **_grid(feature, config, resolve_url),
    }
    banners = [_render_banner_item(b, resolve_url) for b in _dicts(config.get("sectionBanners"))]
    if banners:
        section = {"type": "carousel" if len(banners) > 1 else "banner"}
        if len(banners) > 1:
            section["autoPlay"] = _flag(config.get("bannerAutoPlay"), default=True)
            interval = config.get("bannerInterval")
            section["interval"] = interval if isinstance(interval, int) and interval > 0 else DEFAULT_INTERVAL
        section["items"] = banners
        rendered["bannerSection"] = section
    return rendered


def _html(feature: GridFeature, config: dict, resolve_url: UrlResolver) -> dict:
    content = config.get("htmlContent")
    return {
        "content": content if isinstance(content, str) else "",
        "showNewTag": _flag(config.get("showNewTag")),
    }


_RENDERERS = {
    ComponentType.CAROUSEL.value: _carousel,
    ComponentType.GRID.value: _grid,
    ComponentType.LIST.value: _grid,
    ComponentType.BANNER.value: _banner,
    ComponentType.SECTION.value: _section,
    ComponentType.HTML.value: _html,
}


def render_feature(feature: GridFeature, resolve_url: UrlResolver) -> dict:
    """Render one feature. Unknown types and carousels without a carousel yield the envelope only."""
    envelope = {
        "id": feature.id,
        "type": feature.type,
        "title": feature.title,
        "order": feature.order,
    }
    renderer = _RENDERERS.get(feature.type)
    if renderer is None:
        return envelope
    config = feature.config if isinstance(feature.config, dict) else {}
    body = renderer(feature, config, resolve_url)
    if body is None:
        return envelope
    return {**envelope, **body}


def render_screen(
    screen: Screen,
    user_type: UserType,
    features: Iterable[GridFeature],
    resolve_url: UrlResolver,
) -> dict:
    """Screen envelope with the given features rendered in ``order``."""
    ordered = sorted(features, key=lambda f: (f.order, f.id))
    return {
        "screen": screen.slug,
        "name": screen.name,
        "userType": user_type.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": [render_feature(f, resolve_url) for f in ordered],
    }
