"""Grid feature routes — admin CRUD, reorder and full-layout save."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ...bridge.contracts import CamelModel, CardFields, ReorderItem, SaveLayoutRequest
from ...dependencies import (
    get_db,
    get_layout_notifier,
    get_layout_reconciler,
    get_upload_store,
)
from ...engine.content_store import ContentStore, feature_to_dict
from ...engine.layout_reconciler import LayoutReconciler
from ...engine.segment_resolver import resolve_filter_segment
from ...models import ComponentType
from ...notifications.webhook import LayoutNotifier
from ...storage.upload_store import UploadStore

router = APIRouter(prefix="/grid", tags=["grid"])


# --- Request bodies ---

class CreateFeatureRequest(CamelModel):
    title: str = Field(max_length=255)
    type: ComponentType
    user_type: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)
    is_active: bool = Field(default=True, validation_alias=AliasChoices("isActive", "is_active", "show"))
    config: Optional[dict[str, Any]] = None
    screen_id: Optional[int] = None


class UpdateFeatureRequest(CamelModel):
    title: Optional[str] = Field(default=None, max_length=255)
    type: Optional[ComponentType] = None
    user_type: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("isActive", "is_active", "show")
    )
    config: Optional[dict[str, Any]] = None
    screen_id: Optional[int] = None


class CreateFeatureWithCarouselRequest(CamelModel):
    title: str = Field(max_length=255)
    user_type: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)
    is_active: bool = Field(default=True, validation_alias=AliasChoices("isActive", "is_active", "show"))
    config: Optional[dict[str, Any]] = None
    screen_id: Optional[int] = None
    description: Optional[str] = None
    auto_play: Optional[bool] = None
    interval: Optional[int] = Field(default=None, ge=0)
    cards: list[CardFields] = Field(
        default_factory=list, validation_alias=AliasChoices("cards", "carouselCards")
    )


# --- Endpoints ---

@router.get("")
async def list_features(
    user_type: Optional[str] = Query(None, alias="userType"),
    screen_id: Optional[int] = Query(None, alias="screenId"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: AsyncSession = Depends(get_db),
):
    """Raw features for the admin UI, ordered by ``order``. Inactive rows need ``includeInactive``."""
    features = await ContentStore(db).list_features(
        active_only=not include_inactive,
        user_type=resolve_filter_segment(user_type),
        screen_id=screen_id,
    )
    return [feature_to_dict(f, active_cards_only=not include_inactive) for f in features]


@router.get("/screen/{slug}")
async def list_screen_features(
    slug: str,
    user_type: Optional[str] = Query(None, alias="userType"),
    db: AsyncSession = Depends(get_db),
):
    store = ContentStore(db)
    screen = await store.get_screen_by_slug(slug)
    features = await store.list_features(
        active_only=True,
        user_type=resolve_filter_segment(user_type),
        screen_id=screen.id,
    )
    return [feature_to_dict(f, active_cards_only=True) for f in features]


@router.get("/{feature_id}")
async def get_feature(feature_id: int, db: AsyncSession = Depends(get_db)):
    return feature_to_dict(await ContentStore(db).get_feature(feature_id))


@router.post("", status_code=201)
async def create_feature(
    body: CreateFeatureRequest,
    db: AsyncSession = Depends(get_db),
    uploads: UploadStore = Depends(get_upload_store),
):
    store = ContentStore(db)
    if body.screen_id is not None:
        await store.get_screen(body.screen_id)
    feature = await store.create_feature(
        title=body.title,
        type=body.type,
        user_type=body.user_type,
        config=await uploads.materialize_images(body.config or {}),
        order=body.order,
        screen_id=body.screen_id,
        is_active=body.is_active,
    )
    await db.commit()
    return feature_to_dict(feature)


@router.post("/with-carousel", status_code=201)
async def create_feature_with_carousel(
    body: CreateFeatureWithCarouselRequest,
    db: AsyncSession = Depends(get_db),
    uploads: UploadStore = Depends(get_upload_store),
):
    """Create a carousel, its cards and the feature that owns it in one transaction."""
    store = ContentStore(db)
    if body.screen_id is not None:
        await store.get_screen(body.screen_id)
    cards = []
    for card in body.cards:
        if card.image_url:
            card = card.model_copy(update={"image_url": await uploads.save_data_url(card.image_url)})
        cards.append(card)
    feature = await store.create_feature_with_carousel(
        title=body.title,
        user_type=body.user_type,
        cards=cards,
        auto_play=body.auto_play,
        interval=body.interval,
        config=await uploads.materialize_images(body.config or {}),
        order=body.order,
        screen_id=body.screen_id,
        is_active=body.is_active,
        description=body.description,
    )
    await db.commit()
    return feature_to_dict(feature)


@router.post("/reorder")
async def reorder_features(items: list[ReorderItem], db: AsyncSession = Depends(get_db)):
    """Apply ``[{id, order}]``. An unknown id rejects the whole batch."""
    features = await ContentStore(db).reorder_features(items)
    await db.commit()
    return [feature_to_dict(f) for f in features]


@router.post("/save-layout")
async def save_layout(
    body: SaveLayoutRequest,
    reconciler: LayoutReconciler = Depends(get_layout_reconciler),
    notifier: LayoutNotifier = Depends(get_layout_notifier),
):
    """Replace the screen's layout with the submitted PRE_PAID and POST_PAID lists."""
    result = await reconciler.save_layout(
        body.pre_paid_items,
        body.post_paid_items,
        screen_id=body.screen_id,
        expected_version=body.expected_version,
    )
    await notifier.notify_layout_saved(
        screen_id=result["screenId"], layout_version=result["layoutVersion"]
    )
    return result


@router.patch("/{feature_id}")
async def update_feature(
    feature_id: int,
    body: UpdateFeatureRequest,
    db: AsyncSession = Depends(get_db),
    uploads: UploadStore = Depends(get_upload_store),
):
    store = ContentStore(db)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("screen_id") is not None:
        await store.get_screen(changes["screen_id"])
    if changes.get("config") is not None:
        changes["config"] = await uploads.materialize_images(changes["config"])
    for key in ("title", "type", "order", "is_active", "user_type"):
        if key in changes and changes[key] is None:
            changes.pop(key)
    feature = await store.update_feature(feature_id, changes)
    await db.commit()
    return feature_to_dict(feature)


@router.delete("/{feature_id}")
async def delete_feature(feature_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a feature. A carousel feature takes its carousel and cards with it."""
    await ContentStore(db).delete_feature(feature_id)
    await db.commit()
    return {"deleted": feature_id}
