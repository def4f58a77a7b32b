"""FastAPI dependency injection providers."""

from fastapi import Depends

from .config import CmsConfig, get_config
from .database import get_session, get_session_factory
from .engine.layout_reconciler import LayoutReconciler
from .engine.upload_resolver import UploadResolver
from .notifications.webhook import LayoutNotifier, WebhookSender
from .storage.upload_store import UploadStore

_config_instance: CmsConfig | None = None
_upload_resolver = None
_upload_store = None
_layout_reconciler = None
_layout_notifier = None


def get_app_config() -> CmsConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


async def get_db(config: CmsConfig = Depends(get_app_config)):
    """Get an async database session."""
    async for session in get_session(config):
        yield session


def get_upload_resolver() -> UploadResolver:
    global _upload_resolver
    if _upload_resolver is None:
        config = get_app_config()
        _upload_resolver = UploadResolver(config.api_base_url, config.upload_url_prefix)
    return _upload_resolver


def get_upload_store() -> UploadStore:
    global _upload_store
    if _upload_store is None:
        config = get_app_config()
        _upload_store = UploadStore(
            config.upload_path,
            url_prefix=config.upload_url_prefix,
            max_bytes=config.upload_max_bytes,
        )
    return _upload_store


def get_layout_reconciler() -> LayoutReconciler:
    """Get the layout reconciler singleton. Its per-screen locks live for the process."""
    global _layout_reconciler
    if _layout_reconciler is None:
        config = get_app_config()
        _layout_reconciler = LayoutReconciler(
            db_session_factory=get_session_factory(config),
            upload_store=get_upload_store(),
            default_screen_slug=config.default_screen_slug,
        )
    return _layout_reconciler


def get_layout_notifier() -> LayoutNotifier:
    global _layout_notifier
    if _layout_notifier is None:
        config = get_app_config()
        _layout_notifier = LayoutNotifier(
            url=config.layout_webhook_url,
            sender=WebhookSender(timeout=config.layout_webhook_timeout),
        )
    return _layout_notifier
