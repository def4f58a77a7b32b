"""Layout Reconciler — applies a full-layout snapshot from the admin UI.

A snapshot is two ordered lists, one per segment. The reconciler diffs them
against what the screen currently holds and creates, updates, deletes and
reorders features (and their carousel cards) so the stored layout matches,
all in one transaction. A save either lands completely or not at all.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import update

from ..bridge.contracts import CardFields, LayoutComponent, Pending, Persisted
from ..errors import CmsError, ConflictError, InvalidInputError, LayoutSaveError
from ..models import CarouselCard, ComponentType, GridFeature, Screen, UserType
from ..models.base import utcnow
from ..storage.upload_store import UploadStore
from ..utils.logging import get_logger
from .content_store import ContentStore, card_attrs, layout_item_to_dict
from .segment_resolver import resolve_write_segment

logger = get_logger("engine.layout_reconciler")


@dataclass
class _Prepared:
    component: LayoutComponent
    config: dict
    cards: list[CardFields]


@dataclass
class _SaveStats:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: list = field(default_factory=list)
    cards_created: int = 0
    cards_updated: int = 0
    cards_deleted: int = 0


class LayoutReconciler:
    """Transactional save of a two-segment layout snapshot for one screen."""

    def __init__(
        self,
        db_session_factory=None,
        upload_store: Optional[UploadStore] = None,
        default_screen_slug: str = "dashboard",
    ):
        self._db_session_factory = db_session_factory
        self._upload_store = upload_store
        self._default_screen_slug = default_screen_slug
        self._locks: dict[int, asyncio.Lock] = {}

    def _lock_for(self, screen_id: int) -> asyncio.Lock:
        lock = self._locks.get(screen_id)
        if lock is None:
            lock = self._locks[screen_id] = asyncio.Lock()
        return lock

    async def save_layout(
        self,
        pre_paid_items: list[LayoutComponent],
        post_paid_items: list[LayoutComponent],
        screen_id: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> dict:
        """Reconcile both segment lists against the screen and return the stored result."""
        uploaded: list[str] = []
        try:
            target_id = await self._resolve_screen_id(screen_id)
            async with self._lock_for(target_id):
                pre = await self._prepare(pre_paid_items, uploaded)
                post = await self._prepare(post_paid_items, uploaded)
                result = await self._save(target_id, pre, post, expected_version)
        except CmsError:
            await self._discard_uploads(uploaded)
            raise
        except Exception as exc:
            await self._discard_uploads(uploaded)
            logger.error("layout_save_failed", screen_id=screen_id, error=str(exc), exc_info=True)
            raise LayoutSaveError(f"Layout save failed and was rolled back: {exc}") from exc

        logger.info(
            "layout_saved",
            screen_id=result["screenId"],
            layout_version=result["layoutVersion"],
            created=result["created"],
            updated=result["updated"],
            deleted=result["deleted"],
            skipped=len(result["skipped"]),
        )
        return result

    async def _resolve_screen_id(self, screen_id: Optional[int]) -> int:
        async with self._db_session_factory() as session:
            store = ContentStore(session)
            if screen_id is not None:
                return (await store.get_screen(screen_id)).id
            screen = await store.provision_screen(self._default_screen_slug)
            await session.commit()
            return screen.id

    async def _prepare(self, items: list[LayoutComponent], uploaded: list[str]) -> list[_Prepared]:
        """Pull flat config fields together and store any inline images as files.

        Every file written here is recorded in ``uploaded`` so a failed save can remove it.
        """
        prepared = []
        for component in items:
            config = component.effective_config()
            cards = list(component.carousel_cards)
            if self._upload_store is not None:
                config = await self._upload_store.materialize_images(config, uploaded)
                cards = [await self._materialize_card(card, uploaded) for card in cards]
            prepared.append(_Prepared(component=component, config=config, cards=cards))
        return prepared

    async def _materialize_card(self, card: CardFields, uploaded: list[str]) -> CardFields:
        if not card.image_url or not card.image_url.startswith("data:"):
            return card
        stored = await self._upload_store.save_data_url(card.image_url)
        uploaded.append(stored)
        return card.model_copy(update={"image_url": stored})

    async def _discard_uploads(self, uploaded: list[str]) -> None:
        """Remove files written for a save that did not land."""
        removed = 0
        for path in uploaded:
            try:
                removed += await self._upload_store.delete(path)
            except OSError as exc:
                logger.warning("layout_upload_cleanup_failed", path=path, error=str(exc))
        if uploaded:
            logger.info("layout_uploads_discarded", count=removed)

    @staticmethod
    def _reject_duplicates(items: list[_Prepared]) -> set[int]:
        seen: set[int] = set()
        for prepared in items:
            ref = prepared.component.ref
            if isinstance(ref, Persisted):
                if ref.id in seen:
                    raise InvalidInputError(f"Feature {ref.id} appears more than once in the layout")
                seen.add(ref.id)
        return seen

    async def _save(
        self,
        screen_id: int,
        pre: list[_Prepared],
        post: list[_Prepared],
        expected_version: Optional[int],
    ) -> dict:
        stats = _SaveStats()
        async with self._db_session_factory() as session:
            async with session.begin():
                store = ContentStore(session)
                screen = await store.get_screen(screen_id)
                seen_version = screen.layout_version
                if expected_version is not None and expected_version != seen_version:
                    raise ConflictError(
                        f"Layout of screen {screen_id} changed since it was loaded "
                        f"(expected version {expected_version}, current {seen_version})"
                    )

                keep = self._reject_duplicates(pre + post)
                existing = await store.list_features(screen_id=screen_id)
                by_id = {f.id: f for f in existing}

                for feature in existing:
                    if feature.id not in keep:
                        await store.remove_feature(feature)
                        by_id.pop(feature.id)
                        stats.deleted += 1

                for segment, items in ((UserType.PRE_PAID, pre), (UserType.POST_PAID, post)):
                    for index, prepared in enumerate(items):
                        await self._apply(store, screen_id, segment, index, prepared, by_id, stats)

                await self._bump_version(session, screen_id, seen_version)

                pre_features = await store.list_features(screen_id=screen_id, user_type=UserType.PRE_PAID)
                post_features = await store.list_features(screen_id=screen_id, user_type=UserType.POST_PAID)
                return {
                    "success": True,
                    "screenId": screen_id,
                    "layoutVersion": seen_version + 1,
                    "created": stats.created,
                    "updated": stats.updated,
                    "deleted": stats.deleted,
                    "skipped": stats.skipped,
                    "cardsCreated": stats.cards_created,
                    "cardsUpdated": stats.cards_updated,
                    "cardsDeleted": stats.cards_deleted,
                    "prePaidItems": [layout_item_to_dict(f) for f in pre_features],
                    "postPaidItems": [layout_item_to_dict(f) for f in post_features],
                }

    def _segment_for(self, component: LayoutComponent, segment: UserType) -> UserType:
        if component.user_type is not None:
            requested = resolve_write_segment(component.user_type)
            if requested is not segment:
                logger.warning(
                    "segment_overridden",
                    feature_id=component.id,
                    requested=component.user_type,
                    stored=segment.value,
                )
        return segment

    async def _apply(
        self,
        store: ContentStore,
        screen_id: int,
        segment: UserType,
        index: int,
        prepared: _Prepared,
        by_id: dict[int, GridFeature],
        stats: _SaveStats,
    ) -> None:
        component = prepared.component
        segment = self._segment_for(component, segment)
        ref = component.ref

        if isinstance(ref, Pending):
            if component.type is ComponentType.CAROUSEL:
                await store.create_feature_with_carousel(
                    title=component.title,
                    user_type=segment,
                    cards=prepared.cards,
                    auto_play=component.auto_play,
                    interval=component.interval,
                    config=prepared.config,
                    order=index,
                    screen_id=screen_id,
                    is_active=component.show,
                )
                stats.cards_created += len(prepared.cards)
            else:
                await store.create_feature(
                    title=component.title,
                    type=component.type,
                    user_type=segment,
                    config=prepared.config,
                    order=index,
                    screen_id=screen_id,
                    is_active=component.show,
                )
            stats.created += 1
            return

        feature = by_id.get(ref.id)
        if feature is None:
            logger.info("layout_item_skipped", feature_id=ref.id, reason="not_found")
            stats.skipped.append(ref.id)
            return

        feature = await store.update_feature(
            feature.id,
            {
                "title": component.title,
                "type": component.type,
                "order": index,
                "user_type": segment,
                "is_active": component.show,
                "config": prepared.config,
            },
        )
        stats.updated += 1

        if component.type is ComponentType.CAROUSEL:
            await self._reconcile_carousel(store, feature, segment, prepared, stats)

    async def _reconcile_carousel(
        self,
        store: ContentStore,
        feature: GridFeature,
        segment: UserType,
        prepared: _Prepared,
        stats: _SaveStats,
    ) -> None:
        component = prepared.component
        carousel = feature.carousel

        if carousel is None:
            if feature.carousel_id is not None:
                logger.warning(
                    "carousel_already_gone", feature_id=feature.id, carousel_id=feature.carousel_id
                )
            carousel = await store.create_carousel(
                name=feature.title,
                user_type=segment,
                auto_play=component.auto_play,
                interval=component.interval,
                cards=prepared.cards,
            )
            feature.carousel_id = carousel.id
            await store.session.flush()
            stats.cards_created += len(prepared.cards)
            return

        carousel.name = feature.title
        carousel.user_type = segment.value
        if component.auto_play is not None:
            carousel.auto_play = component.auto_play
        if component.interval is not None:
            carousel.interval = component.interval

        owned = {card.id: card for card in carousel.cards}
        current = {card.ref.id for card in prepared.cards if isinstance(card.ref, Persisted)}
        for card_id in sorted(component.original_card_refs() - current):
            card = owned.pop(card_id, None)
            if card is None:
                logger.warning("card_already_gone", card_id=card_id, carousel_id=carousel.id)
                continue
            carousel.cards.remove(card)
            stats.cards_deleted += 1

        for index, payload in enumerate(prepared.cards):
            ref = payload.ref
            target = owned.get(ref.id) if isinstance(ref, Persisted) else None
            if target is not None:
                for key, value in card_attrs(payload).items():
                    setattr(target, key, value)
                target.order = index
                target.user_type = segment.value
                stats.cards_updated += 1
            else:
                carousel.cards.append(
                    CarouselCard(order=index, user_type=segment.value, **card_attrs(payload))
                )
                stats.cards_created += 1

        await store.session.flush()

    @staticmethod
    async def _bump_version(session, screen_id: int, seen_version: int) -> None:
        result = await session.execute(
            update(Screen)
            .where(Screen.id == screen_id, Screen.layout_version == seen_version)
            .values(layout_version=seen_version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Layout of screen {screen_id} was saved concurrently; reload and try again"
            )
