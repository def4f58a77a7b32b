"""Content Store — async repository over screens, grid features, carousels and cards.

The store is bound to one ``AsyncSession`` and only ever flushes. Whoever opened
the session owns the transaction, so a route can commit after a single call and
the layout reconciler can run many calls inside one ``session.begin()`` block.
"""

from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..bridge.contracts import CardFields, validate_feature_config
from ..errors import ConflictError, InvalidInputError, NotFoundError, ReferentialCleanupFailure
from ..models import Carousel, CarouselCard, ComponentType, GridFeature, Screen, UserType
from ..utils.logging import get_logger
from .segment_resolver import resolve_write_segment, segment_predicate

logger = get_logger("engine.content_store")

DEFAULT_SCREENS = (
    ("dashboard", "Dashboard", "Main dashboard screen"),
    ("home", "Home", "Home screen"),
    ("offers", "Offers", "Offers and promotions screen"),
)

# Model attribute -> camelCase payload key
CARD_FIELD_MAP = {
    "image_url": "imageUrl",
    "title": "title",
    "subtitle": "subtitle",
    "description": "description",
    "price": "price",
    "currency": "currency",
    "cta_text": "ctaText",
    "cta_action": "ctaAction",
    "cta_url": "ctaUrl",
    "background_color": "backgroundColor",
    "text_color": "textColor",
    "card_metadata": "metadata",
    "is_active": "isActive",
}

_FEATURE_UPDATABLE = {"title", "type", "order", "user_type", "is_active", "config", "screen_id"}
_CAROUSEL_UPDATABLE = {"name", "description", "user_type", "auto_play", "interval", "is_active"}
_SCREEN_UPDATABLE = {"slug", "name", "description", "is_active"}


def _feature_options():
    return (selectinload(GridFeature.carousel).selectinload(Carousel.cards),)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ── Serializers (admin form, camelCase) ──

def screen_to_dict(screen: Screen) -> dict:
    return {
        "id": screen.id,
        "slug": screen.slug,
        "name": screen.name,
        "description": screen.description,
        "isActive": screen.is_active,
        "layoutVersion": screen.layout_version,
        "createdAt": _iso(screen.created_at),
        "updatedAt": _iso(screen.updated_at),
    }


def card_to_dict(card: CarouselCard) -> dict:
    result = {"id": card.id, "carouselId": card.carousel_id, "order": card.order}
    for attr, key in CARD_FIELD_MAP.items():
        result[key] = getattr(card, attr)
    result["userType"] = card.user_type
    result["createdAt"] = _iso(card.created_at)
    result["updatedAt"] = _iso(card.updated_at)
    return result


def carousel_to_dict(carousel: Carousel, include_cards: bool = True, active_cards_only: bool = False) -> dict:
    result = {
        "id": carousel.id,
        "name": carousel.name,
        "description": carousel.description,
        "userType": carousel.user_type,
        "autoPlay": carousel.auto_play,
        "interval": carousel.interval,
        "isActive": carousel.is_active,
        "createdAt": _iso(carousel.created_at),
        "updatedAt": _iso(carousel.updated_at),
    }
    if include_cards:
        result["cards"] = [
            card_to_dict(c) for c in carousel.cards if c.is_active or not active_cards_only
        ]
    return result


def feature_to_dict(feature: GridFeature, active_cards_only: bool = False) -> dict:
    """Admin form of a feature. Carousel and cards must already be loaded."""
    return {
        "id": feature.id,
        "screenId": feature.screen_id,
        "title": feature.title,
        "type": feature.type,
        "order": feature.order,
        "userType": feature.user_type,
        "isActive": feature.is_active,
        "config": feature.config or {},
        "carouselId": feature.carousel_id,
        "carousel": (
            carousel_to_dict(feature.carousel, active_cards_only=active_cards_only)
            if feature.carousel is not None
            else None
        ),
        "createdAt": _iso(feature.created_at),
        "updatedAt": _iso(feature.updated_at),
    }


def layout_item_to_dict(feature: GridFeature) -> dict:
    """Feature in the shape the save-layout endpoint accepts back."""
    item = feature_to_dict(feature)
    item["show"] = feature.is_active
    item["isNew"] = False
    if feature.carousel is not None:
        cards = [card_to_dict(c) for c in feature.carousel.cards]
        item["autoPlay"] = feature.carousel.auto_play
        item["interval"] = feature.carousel.interval
        item["carouselCards"] = cards
        item["originalCardIds"] = [c["id"] for c in cards]
    return item


def card_attrs(fields: CardFields, exclude_unset: bool = True) -> dict[str, Any]:
    """Map a card payload onto CarouselCard attribute names. Id, order and segment are left to the caller."""
    data = fields.model_dump(exclude_unset=exclude_unset)
    attrs = {}
    for attr, key in CARD_FIELD_MAP.items():
        source = "metadata" if attr == "card_metadata" else attr
        if source in data:
            attrs[attr] = data[source]
    if attrs.get("is_active") is None:
        attrs.pop("is_active", None)
    return attrs


class ContentStore:
    """Repository for the layout graph. Every read eager-loads carousels and cards."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    # ── Screens ──

    async def create_screen(
        self,
        slug: str,
        name: str,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> Screen:
        slug = (slug or "").strip()
        if not slug:
            raise InvalidInputError("Screen slug is required")
        if await self.find_screen_by_slug(slug) is not None:
            raise ConflictError(f"Screen with slug '{slug}' already exists")

        screen = Screen(slug=slug, name=name, description=description, is_active=is_active)
        self._session.add(screen)
        await self._session.flush()
        logger.info("screen_created", id=screen.id, slug=slug)
        return screen

    async def get_screen(self, screen_id: int) -> Screen:
        screen = await self._session.get(Screen, screen_id)
        if screen is None:
            raise NotFoundError(f"Screen {screen_id} not found")
        return screen

    async def find_screen_by_slug(self, slug: str) -> Optional[Screen]:
        result = await self._session.execute(select(Screen).where(Screen.slug == slug))
        return result.scalar_one_or_none()

    async def get_screen_by_slug(self, slug: str) -> Screen:
        screen = await self.find_screen_by_slug(slug)
        if screen is None:
            raise NotFoundError(f'Screen "{slug}" not found')
        return screen

    async def list_screens(self, active_only: bool = True) -> list[Screen]:
        query = select(Screen).order_by(Screen.created_at.asc(), Screen.id.asc())
        if active_only:
            query = query.where(Screen.is_active.is_(True))
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def update_screen(self, screen_id: int, changes: dict[str, Any]) -> Screen:
        screen = await self.get_screen(screen_id)
        new_slug = changes.get("slug")
        if new_slug and new_slug != screen.slug:
            if await self.find_screen_by_slug(new_slug) is not None:
                raise ConflictError(f"Screen with slug '{new_slug}' already exists")
        for key, value in changes.items():
            if key in _SCREEN_UPDATABLE and value is not None:
                setattr(screen, key, value)
        await self._session.flush()
        return screen

    async def deactivate_screen(self, screen_id: int) -> Screen:
        screen = await self.get_screen(screen_id)
        screen.is_active = False
        await self._session.flush()
        logger.info("screen_deactivated", id=screen_id, slug=screen.slug)
        return screen

    async def ensure_screen(self, slug: str, name: str, description: Optional[str] = None) -> Screen:
        """Return the screen with ``slug``, creating it when missing."""
        screen = await self.find_screen_by_slug(slug)
        if screen is not None:
            return screen
        screen = Screen(slug=slug, name=name, description=description)
        self._session.add(screen)
        await self._session.flush()
        logger.info("screen_provisioned", id=screen.id, slug=slug)
        return screen

    async def ensure_default_screens(self) -> list[Screen]:
        return [await self.ensure_screen(*spec) for spec in DEFAULT_SCREENS]

    async def provision_screen(self, slug: str) -> Screen:
        """ensure_screen with the built-in name and description for default slugs."""
        known = {s: (name, desc) for s, name, desc in DEFAULT_SCREENS}
        name, description = known.get(slug, (slug.replace("-", " ").title(), None))
        return await self.ensure_screen(slug, name, description)

    # ── Features ──

    async def next_feature_order(self, screen_id: Optional[int], user_type: UserType) -> int:
        query = select(func.max(GridFeature.order)).where(segment_predicate(user_type))
        if screen_id is None:
            query = query.where(GridFeature.screen_id.is_(None))
        else:
            query = query.where(GridFeature.screen_id == screen_id)
        current = (await self._session.execute(query)).scalar()
        return 0 if current is None else current + 1

    async def create_feature(
        self,
        title: str,
        type: ComponentType | str,
        user_type=None,
        config: Optional[dict] = None,
        order: Optional[int] = None,
        screen_id: Optional[int] = None,
        is_active: bool = True,
        carousel_id: Optional[int] = None,
    ) -> GridFeature:
        component_type = ComponentType(type)
        segment = resolve_write_segment(user_type)
        if order is None:
            order = await self.next_feature_order(screen_id, segment)

        feature = GridFeature(
            title=title,
            type=component_type.value,
            order=order,
            user_type=segment.value,
            is_active=is_active,
            config=validate_feature_config(component_type, config),
            screen_id=screen_id,
            carousel_id=carousel_id,
        )
        self._session.add(feature)
        await self._session.flush()
        logger.info(
            "feature_created", id=feature.id, type=feature.type, user_type=segment.value, order=order
        )
        return await self.get_feature(feature.id)

    async def get_feature(self, feature_id: int) -> GridFeature:
        result = await self._session.execute(
            select(GridFeature)
            .where(GridFeature.id == feature_id)
            .options(*_feature_options())
            .execution_options(populate_existing=True)
        )
        feature = result.scalar_one_or_none()
        if feature is None:
            raise NotFoundError(f"Grid feature {feature_id} not found")
        return feature

    async def list_features(
        self,
        active_only: bool = False,
        user_type: Optional[UserType] = None,
        screen_id: Optional[int] = None,
        screen_slug: Optional[str] = None,
    ) -> list[GridFeature]:
        """Features ordered by ``order`` ascending. ``user_type`` is an exact match."""
        query = select(GridFeature).options(*_feature_options())
        if active_only:
            query = query.where(GridFeature.is_active.is_(True))
        if user_type is not None:
            query = query.where(segment_predicate(user_type))
        if screen_id is not None:
            query = query.where(GridFeature.screen_id == screen_id)
        if screen_slug is not None:
            query = query.join(Screen, GridFeature.screen_id == Screen.id).where(Screen.slug == screen_slug)
        query = query.order_by(GridFeature.order.asc(), GridFeature.id.asc())
        result = await self._session.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def update_feature(self, feature_id: int, changes: dict[str, Any]) -> GridFeature:
        feature = await self.get_feature(feature_id)
        changes = {k: v for k, v in changes.items() if k in _FEATURE_UPDATABLE}

        if "user_type" in changes:
            changes["user_type"] = resolve_write_segment(changes["user_type"]).value
        if "type" in changes:
            changes["type"] = ComponentType(changes["type"]).value
        if "config" in changes or "type" in changes:
            target_type = changes.get("type", feature.type)
            raw = changes["config"] if "config" in changes else feature.config
            changes["config"] = validate_feature_config(target_type, raw)

        for key, value in changes.items():
            setattr(feature, key, value)

        if feature.carousel_id is not None and feature.type != ComponentType.CAROUSEL.value:
            try:
                await self.drop_owned_carousel(feature)
            except ReferentialCleanupFailure as exc:
                logger.warning("carousel_already_gone", feature_id=feature.id, error=exc.detail)
        elif feature.carousel is not None and "user_type" in changes:
            feature.carousel.user_type = feature.user_type

        await self._session.flush()
        logger.info("feature_updated", id=feature_id, fields=sorted(changes))
        return await self.get_feature(feature_id)

    async def drop_owned_carousel(self, feature: GridFeature) -> None:
        """Delete the carousel a feature owns and unlink it.

        Raises ReferentialCleanupFailure when the feature points at a carousel
        that no longer exists; the link is cleared either way.
        """
        carousel_id = feature.carousel_id
        if carousel_id is None:
            return
        carousel = feature.carousel
        feature.carousel = None
        feature.carousel_id = None
        if carousel is None:
            raise ReferentialCleanupFailure(
                f"Carousel {carousel_id} owned by feature {feature.id} is already gone"
            )
        await self._session.delete(carousel)
        logger.info("carousel_deleted", id=carousel_id, feature_id=feature.id)

    async def delete_feature(self, feature_id: int) -> GridFeature:
        feature = await self.get_feature(feature_id)
        await self.remove_feature(feature)
        return feature

    async def remove_feature(self, feature: GridFeature) -> None:
        """Delete a loaded feature together with its owned carousel and cards."""
        try:
            await self.drop_owned_carousel(feature)
        except ReferentialCleanupFailure as exc:
            logger.warning("carousel_already_gone", feature_id=feature.id, error=exc.detail)
        await self._session.delete(feature)
        await self._session.flush()
        logger.info("feature_deleted", id=feature.id, type=feature.type, user_type=feature.user_type)

    async def reorder_features(self, items: Iterable[Any]) -> list[GridFeature]:
        """Apply ``[{id, order}]`` in one go. Any unknown id aborts before a single write."""
        pairs = [_id_order(item) for item in items]
        if not pairs:
            return []
        ids = [feature_id for feature_id, _ in pairs]
        result = await self._session.execute(select(GridFeature).where(GridFeature.id.in_(ids)))
        found = {f.id: f for f in result.scalars().all()}
        missing = sorted(set(ids) - set(found))
        if missing:
            raise NotFoundError(f"Grid features not found: {', '.join(str(i) for i in missing)}")

        for feature_id, order in pairs:
            found[feature_id].order = order
        await self._session.flush()
        logger.info("features_reordered", count=len(pairs))
        return [await self.get_feature(feature_id) for feature_id in ids]

    async def create_feature_with_carousel(
        self,
        title: str,
        user_type=None,
        cards: Iterable[CardFields] = (),
        auto_play: Optional[bool] = None,
        interval: Optional[int] = None,
        config: Optional[dict] = None,
        order: Optional[int] = None,
        screen_id: Optional[int] = None,
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> GridFeature:
        """Carousel, its cards and the feature that owns it, flushed as one unit."""
        segment = resolve_write_segment(user_type)
        carousel = await self.create_carousel(
            name=title,
            user_type=segment,
            description=description,
            auto_play=auto_play,
            interval=interval,
            cards=cards,
        )
        return await self.create_feature(
            title=title,
            type=ComponentType.CAROUSEL,
            user_type=segment,
            config=config,
            order=order,
            screen_id=screen_id,
            is_active=is_active,
            carousel_id=carousel.id,
        )

    # ── Carousels ──

    async def create_carousel(
        self,
        name: str,
        user_type=None,
        description: Optional[str] = None,
        auto_play: Optional[bool] = None,
        interval: Optional[int] = None,
        is_active: bool = True,
        cards: Iterable[CardFields] = (),
    ) -> Carousel:
        segment = resolve_write_segment(user_type)
        carousel = Carousel(
            name=name,
            description=description,
            user_type=segment.value,
            auto_play=True if auto_play is None else auto_play,
            interval=5000 if interval is None else interval,
            is_active=is_active,
        )
        # Card order is the position in the input, card segment is the carousel's
        carousel.cards = [
            CarouselCard(order=index, user_type=segment.value, **card_attrs(card))
            for index, card in enumerate(cards)
        ]
        self._session.add(carousel)
        await self._session.flush()
        logger.info("carousel_created", id=carousel.id, user_type=segment.value, cards=len(carousel.cards))
        return await self.get_carousel(carousel.id)

    async def get_carousel(self, carousel_id: int) -> Carousel:
        result = await self._session.execute(
            select(Carousel)
            .where(Carousel.id == carousel_id)
            .options(selectinload(Carousel.cards))
            .execution_options(populate_existing=True)
        )
        carousel = result.scalar_one_or_none()
        if carousel is None:
            raise NotFoundError(f"Carousel {carousel_id} not found")
        return carousel

    async def list_carousels(self, user_type: Optional[UserType] = None, active_only: bool = False) -> list[Carousel]:
        query = select(Carousel).options(selectinload(Carousel.cards))
        if user_type is not None:
            query = query.where(Carousel.user_type == user_type.value)
        if active_only:
            query = query.where(Carousel.is_active.is_(True))
        query = query.order_by(Carousel.created_at.desc(), Carousel.id.desc())
        result = await self._session.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def update_carousel(self, carousel_id: int, changes: dict[str, Any]) -> Carousel:
        carousel = await self.get_carousel(carousel_id)
        for key, value in changes.items():
            if key not in _CAROUSEL_UPDATABLE or value is None:
                continue
            if key == "user_type":
                value = resolve_write_segment(value).value
            setattr(carousel, key, value)
        await self._session.flush()
        return await self.get_carousel(carousel_id)

    async def delete_carousel(self, carousel_id: int) -> Carousel:
        carousel = await self.get_carousel(carousel_id)
        owners = await self._session.execute(
            select(GridFeature)
            .where(GridFeature.carousel_id == carousel_id)
            .options(selectinload(GridFeature.carousel))
        )
        for feature in owners.scalars().all():
            feature.carousel = None
            feature.carousel_id = None
            logger.warning("carousel_detached_from_feature", carousel_id=carousel_id, feature_id=feature.id)
        await self._session.delete(carousel)
        await self._session.flush()
        logger.info("carousel_deleted", id=carousel_id)
        return carousel

    # ── Cards ──

    async def add_card(self, carousel_id: int, fields: CardFields) -> CarouselCard:
        carousel = await self.get_carousel(carousel_id)
        order = fields.order if fields.order is not None else len(carousel.cards)
        card = CarouselCard(
            carousel_id=carousel.id,
            order=order,
            user_type=carousel.user_type,
            **card_attrs(fields),
        )
        self._session.add(card)
        await self._session.flush()
        logger.info("card_created", id=card.id, carousel_id=carousel_id, order=order)
        return await self.get_card(card.id)

    async def get_card(self, card_id: int) -> CarouselCard:
        result = await self._session.execute(
            select(CarouselCard)
            .where(CarouselCard.id == card_id)
            .execution_options(populate_existing=True)
        )
        card = result.scalar_one_or_none()
        if card is None:
            raise NotFoundError(f"Card {card_id} not found")
        return card

    async def update_card(self, card_id: int, fields: CardFields) -> CarouselCard:
        card = await self.get_card(card_id)
        for key, value in card_attrs(fields).items():
            setattr(card, key, value)
        if fields.order is not None:
            card.order = fields.order
        if fields.user_type is not None:
            card.user_type = resolve_write_segment(fields.user_type).value
        await self._session.flush()
        return await self.get_card(card_id)

    async def delete_card(self, card_id: int) -> CarouselCard:
        card = await self.get_card(card_id)
        await self._session.delete(card)
        await self._session.flush()
        logger.info("card_deleted", id=card_id, carousel_id=card.carousel_id)
        return card

    async def reorder_cards(self, carousel_id: int, items: Iterable[Any]) -> Carousel:
        """Apply ``[{id, order}]`` to one carousel's cards, all or nothing."""
        carousel = await self.get_carousel(carousel_id)
        owned = {c.id: c for c in carousel.cards}
        pairs = [_id_order(item) for item in items]
        missing = sorted({card_id for card_id, _ in pairs} - set(owned))
        if missing:
            raise NotFoundError(
                f"Cards not found in carousel {carousel_id}: {', '.join(str(i) for i in missing)}"
            )
        for card_id, order in pairs:
            owned[card_id].order = order
        await self._session.flush()
        return await self.get_carousel(carousel_id)


def _id_order(item: Any) -> tuple[int, int]:
    if isinstance(item, dict):
        return int(item["id"]), int(item["order"])
    return int(item.id), int(item.order)
