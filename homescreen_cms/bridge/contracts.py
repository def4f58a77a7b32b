"""Bridge contracts — Pydantic models shared with the admin UI.

Layout snapshots arrive as camelCase JSON. Component identity is modelled as
``ComponentRef = Persisted | Pending`` so the reconciler dispatches on a type
rather than sniffing id prefixes, and each component type has its own config
shape validated before anything is written.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import InvalidInputError
from ..models.enums import ComponentType

# Prefix the admin UI puts on ids it invents for unsaved rows
TEMP_ID_PREFIX = "temp-"


# ── Component identity ──

@dataclass(frozen=True)
class Persisted:
    id: int


@dataclass(frozen=True)
class Pending:
    token: str


ComponentRef = Union[Persisted, Pending]


def parse_ref(raw_id: Any, is_new: bool = False) -> ComponentRef:
    """Classify a client id. Anything that is not a plain integer id is pending."""
    if is_new or raw_id is None or isinstance(raw_id, bool):
        return Pending("" if raw_id is None else str(raw_id))
    if isinstance(raw_id, int):
        return Persisted(raw_id)
    if isinstance(raw_id, str):
        token = raw_id.strip()
        if token.startswith(TEMP_ID_PREFIX) or not token.isdigit():
            return Pending(token)
        return Persisted(int(token))
    return Pending(str(raw_id))


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Per-type config payloads ──

class _ConfigModel(CamelModel):
    # Unknown keys are kept so newer admin builds can add fields
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class GridItemConfig(_ConfigModel):
    id: Optional[Union[int, str]] = None
    icon_url: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    show_new_tag: Optional[bool] = None
    cta_url: Optional[str] = None


class SectionBannerConfig(_ConfigModel):
    id: Optional[Union[int, str]] = None
    order: Optional[int] = None
    image_url: Optional[str] = None
    label: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    tag: Optional[str] = None
    cta_text: Optional[str] = None
    cta_action: Optional[str] = None
    cta_url: Optional[str] = None


class BannerConfig(_ConfigModel):
    images: Optional[list[str]] = None
    subtitle: Optional[str] = None
    show_new_tag: Optional[bool] = None
    cta_text: Optional[str] = None
    cta_action: Optional[str] = None
    cta_url: Optional[str] = None


class GridConfig(_ConfigModel):
    """Shared by ``grid`` and ``list`` components."""

    columns: Optional[int] = Field(default=None, ge=1, le=12)
    display_mode: Optional[str] = None
    show_new_tag: Optional[bool] = None
    grid_items: Optional[list[GridItemConfig]] = None


class SectionConfig(GridConfig):
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    section_banners: Optional[list[SectionBannerConfig]] = None
    banner_auto_play: Optional[bool] = None
    banner_interval: Optional[int] = Field(default=None, ge=0)


class HtmlConfig(_ConfigModel):
    html_content: Optional[str] = None
    show_new_tag: Optional[bool] = None


class CarouselFeatureConfig(_ConfigModel):
    # Slides live in the carousel tables, not in the config blob
    show_new_tag: Optional[bool] = None


CONFIG_MODELS: dict[ComponentType, type[_ConfigModel]] = {
    ComponentType.BANNER: BannerConfig,
    ComponentType.GRID: GridConfig,
    ComponentType.LIST: GridConfig,
    ComponentType.SECTION: SectionConfig,
    ComponentType.HTML: HtmlConfig,
    ComponentType.CAROUSEL: CarouselFeatureConfig,
}

# Config fields the admin UI may send flat on a layout item instead of under "config"
FLAT_CONFIG_KEYS = (
    "columns",
    "displayMode",
    "showNewTag",
    "images",
    "htmlContent",
    "gridItems",
    "sectionBanners",
    "backgroundColor",
    "textColor",
    "bannerAutoPlay",
    "bannerInterval",
)


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors()[:5]:
        loc = ".".join(str(p) for p in error["loc"])
        parts.append(f"{loc}: {error['msg']}")
    return "; ".join(parts)


def validate_feature_config(component_type: ComponentType | str, raw: Any) -> dict[str, Any]:
    """Validate a config blob against its component type and return it in camelCase.

    Only keys the caller supplied are emitted, so validating an already
    validated config returns it unchanged.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InvalidInputError("config must be a JSON object")
    component_type = ComponentType(component_type)
    model = CONFIG_MODELS[component_type]
    try:
        parsed = model.model_validate(raw)
    except ValidationError as exc:
        raise InvalidInputError(
            f"Invalid config for {component_type.value} component: {_summarize(exc)}"
        ) from exc
    return parsed.model_dump(by_alias=True, exclude_unset=True)


# ── Cards ──

class CardFields(CamelModel):
    """Card payload used by the layout snapshot and the card endpoints."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    order: Optional[int] = None
    image_url: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=255)
    subtitle: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = Field(default=None, max_length=10)
    cta_text: Optional[str] = Field(default=None, max_length=100)
    cta_action: Optional[str] = Field(default=None, max_length=50)
    cta_url: Optional[str] = None
    background_color: Optional[str] = Field(default=None, max_length=20)
    text_color: Optional[str] = Field(default=None, max_length=20)
    metadata: Optional[dict[str, Any]] = None
    user_type: Optional[str] = None
    is_active: Optional[bool] = None

    @property
    def ref(self) -> ComponentRef:
        return parse_ref(self.id)


# ── Layout snapshot ──

class LayoutComponent(CamelModel):
    """One item of a segment list in a save-layout snapshot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[Union[int, str]] = None
    is_new: bool = False
    title: str = Field(default="", max_length=255)
    type: ComponentType
    user_type: Optional[str] = None
    show: bool = Field(default=True, validation_alias=AliasChoices("show", "isActive", "is_active"))
    order: Optional[int] = None
    config: Optional[dict[str, Any]] = None
    carousel_id: Optional[int] = None
    auto_play: Optional[bool] = None
    interval: Optional[int] = Field(default=None, ge=0)
    carousel_cards: list[CardFields] = Field(
        default_factory=list,
        validation_alias=AliasChoices("carouselCards", "cards", "carousel_cards"),
    )
    original_card_ids: list[Union[int, str]] = Field(default_factory=list)

    @property
    def ref(self) -> ComponentRef:
        return parse_ref(self.id, self.is_new)

    def effective_config(self) -> dict[str, Any]:
        """``config`` overlaid with any config fields sent flat on the item."""
        merged = dict(self.config or {})
        extras = self.model_extra or {}
        for key in FLAT_CONFIG_KEYS:
            if key in extras and extras[key] is not None:
                merged[key] = extras[key]
        return merged

    def original_card_refs(self) -> set[int]:
        return {
            ref.id for ref in (parse_ref(raw) for raw in self.original_card_ids)
            if isinstance(ref, Persisted)
        }


class SaveLayoutRequest(CamelModel):
    pre_paid_items: list[LayoutComponent] = Field(default_factory=list)
    post_paid_items: list[LayoutComponent] = Field(default_factory=list)
    screen_id: Optional[int] = None
    expected_version: Optional[int] = Field(default=None, ge=0)


class ReorderItem(BaseModel):
    id: int
    order: int = Field(ge=0)
