"""Carousel routes — carousels and their cards."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ...bridge.contracts import CamelModel, CardFields, ReorderItem
from ...dependencies import get_db, get_upload_store
from ...engine.content_store import ContentStore, card_to_dict, carousel_to_dict
from ...engine.segment_resolver import resolve_filter_segment
from ...storage.upload_store import UploadStore

router = APIRouter(prefix="/carousel", tags=["carousel"])


# --- Request bodies ---

class CreateCarouselRequest(CamelModel):
    name: str = Field(max_length=255)
    description: Optional[str] = None
    user_type: Optional[str] = None
    auto_play: Optional[bool] = None
    interval: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True
    cards: list[CardFields] = Field(
        default_factory=list, validation_alias=AliasChoices("cards", "carouselCards")
    )


class UpdateCarouselRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    user_type: Optional[str] = None
    auto_play: Optional[bool] = None
    interval: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


# --- Helpers ---

async def _stored_card(card: CardFields, uploads: UploadStore) -> CardFields:
    if card.image_url and card.image_url.startswith("data:"):
        return card.model_copy(update={"image_url": await uploads.save_data_url(card.image_url)})
    return card


# --- Endpoints ---

@router.get("")
async def list_carousels(
    user_type: Optional[str] = Query(None, alias="userType"),
    db: AsyncSession = Depends(get_db),
):
    carousels = await ContentStore(db).list_carousels(user_type=resolve_filter_segment(user_type))
    return [carousel_to_dict(c) for c in carousels]


@router.post("", status_code=201)
async def create_carousel(
    body: CreateCarouselRequest,
    db: AsyncSession = Depends(get_db),
    uploads: UploadStore = Depends(get_upload_store),
):
    carousel = await ContentStore(db).create_carousel(
        name=body.name,
        user_type=body.user_type,
        description=body.description,
        auto_play=body.auto_play,
        interval=body.interval,
        is_active=body.is_active,
        cards=[await _stored_card(c, uploads) for c in body.cards],
    )
    await db.commit()
    return carousel_to_dict(carousel)


@router.patch("/cards/{card_id}")
async def update_card(
    card_id: int,
    body: CardFields,
    db: AsyncSession = Depends(get_db),
    uploads: UploadStore = Depends(get_upload_store),
):
    card = await ContentStore(db).update_card(card_id, await _stored_card(body, uploads))
    await db.commit()
    return card_to_dict(card)


@router.delete("/cards/{card_id}")
async def delete_card(card_id: int, db: AsyncSession = Depends(get_db)):
    await ContentStore(db).delete_card(card_id)
    await db.commit()
    return {"deleted": card_id}


@router.get("/{carousel_id}")
async def get_carousel(carousel_id: int, db: AsyncSession = Depends(get_db)):
    return carousel_to_dict(await ContentStore(db).get_carousel(carousel_id))


@router.patch("/{carousel_id}")
async def update_carousel(
    carousel_id: int,
    body: UpdateCarouselRequest,
    db: AsyncSession = Depends(get_db),
):
    carousel = await ContentStore(db).update_carousel(carousel_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return carousel_to_dict(carousel)


@router.delete("/{carousel_id}")
async def delete_carousel(carousel_id: int, db: AsyncSession = Depends(get_db)):
    await ContentStore(db).delete_carousel(carousel_id)
    await db.commit()
    return {"deleted": carousel_id}


@router.post("/{carousel_id}/cards", status_code=201)
async def add_card(
    carousel_id: int,
    body: CardFields,
    db: AsyncSession = Depends(get_db),
    uploads: UploadStore = Depends(get_upload_store),
):
    """Append a card. Its segment follows the carousel."""
    card = await ContentStore(db).add_card(carousel_id, await _stored_card(body, uploads))
    await db.commit()
    return card_to_dict(card)


@router.post("/{carousel_id}/cards/reorder")
async def reorder_cards(
    carousel_id: int,
    items: list[ReorderItem],
    db: AsyncSession = Depends(get_db),
):
    carousel = await ContentStore(db).reorder_cards(carousel_id, items)
    await db.commit()
    return carousel_to_dict(carousel)
