"""Mobile-facing routes — rendered screens for one segment."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import CmsConfig
from ...dependencies import get_app_config, get_db, get_upload_resolver
from ...engine.content_store import ContentStore
from ...engine.demo_seed import seed_demo_data
from ...engine.feature_renderer import render_screen
from ...engine.segment_resolver import resolve_read_segment
from ...engine.upload_resolver import UploadResolver

router = APIRouter(prefix="/api/cms", tags=["cms"])


async def _render(
    store: ContentStore,
    screen,
    user_type: Optional[str],
    response: Response,
    config: CmsConfig,
    resolver: UploadResolver,
) -> dict:
    segment = resolve_read_segment(user_type)
    features = await store.list_features(active_only=True, user_type=segment, screen_id=screen.id)
    response.headers["Cache-Control"] = f"public, max-age={config.render_cache_max_age}"
    return render_screen(screen, segment, features, resolver)


@router.get("/dashboard")
async def get_dashboard(
    response: Response,
    user_type: Optional[str] = Query(None, alias="userType"),
    db: AsyncSession = Depends(get_db),
    config: CmsConfig = Depends(get_app_config),
    resolver: UploadResolver = Depends(get_upload_resolver),
):
    """Rendered dashboard. The dashboard screen is created on first access."""
    resolve_read_segment(user_type)
    store = ContentStore(db)
    screen = await store.provision_screen(config.default_screen_slug)
    await db.commit()
    return await _render(store, screen, user_type, response, config, resolver)


@router.get("/screen/{slug}")
async def get_screen(
    slug: str,
    response: Response,
    user_type: Optional[str] = Query(None, alias="userType"),
    db: AsyncSession = Depends(get_db),
    config: CmsConfig = Depends(get_app_config),
    resolver: UploadResolver = Depends(get_upload_resolver),
):
    store = ContentStore(db)
    screen = await store.get_screen_by_slug(slug)
    return await _render(store, screen, user_type, response, config, resolver)


@router.post("/seed", status_code=201)
async def seed(
    db: AsyncSession = Depends(get_db),
    config: CmsConfig = Depends(get_app_config),
):
    """Populate the dashboard with demo content for both segments."""
    result = await seed_demo_data(ContentStore(db), config.default_screen_slug)
    await db.commit()
    return result
