"""Screen routes — screens are soft-deleted, never removed."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from ...bridge.contracts import CamelModel
from ...dependencies import get_db
from ...engine.content_store import ContentStore, screen_to_dict

router = APIRouter(prefix="/screens", tags=["screens"])


class CreateScreenRequest(CamelModel):
    slug: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str = Field(max_length=255)
    description: Optional[str] = None
    is_active: bool = True


class UpdateScreenRequest(CamelModel):
    slug: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("")
async def list_screens(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: AsyncSession = Depends(get_db),
):
    screens = await ContentStore(db).list_screens(active_only=not include_inactive)
    return [screen_to_dict(s) for s in screens]


@router.post("", status_code=201)
async def create_screen(body: CreateScreenRequest, db: AsyncSession = Depends(get_db)):
    screen = await ContentStore(db).create_screen(
        slug=body.slug, name=body.name, description=body.description, is_active=body.is_active
    )
    await db.commit()
    return screen_to_dict(screen)


@router.get("/init")
async def init_default_screens(db: AsyncSession = Depends(get_db)):
    """Provision the dashboard, home and offers screens if they are missing."""
    screens = await ContentStore(db).ensure_default_screens()
    await db.commit()
    return [screen_to_dict(s) for s in screens]


@router.get("/slug/{slug}")
async def get_screen_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    return screen_to_dict(await ContentStore(db).get_screen_by_slug(slug))


@router.get("/{screen_id}")
async def get_screen(screen_id: int, db: AsyncSession = Depends(get_db)):
    return screen_to_dict(await ContentStore(db).get_screen(screen_id))


@router.patch("/{screen_id}")
async def update_screen(
    screen_id: int,
    body: UpdateScreenRequest,
    db: AsyncSession = Depends(get_db),
):
    screen = await ContentStore(db).update_screen(screen_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return screen_to_dict(screen)


@router.delete("/{screen_id}")
async def deactivate_screen(screen_id: int, db: AsyncSession = Depends(get_db)):
    screen = await ContentStore(db).deactivate_screen(screen_id)
    await db.commit()
    return screen_to_dict(screen)
