"""Upload Store — local blob storage for images referenced by layout content."""

import asyncio
import base64
import binascii
import re
import uuid
from pathlib import Path
from typing import Any, Optional

from ..errors import InvalidInputError
from ..utils.logging import get_logger

logger = get_logger("storage.upload_store")

_DATA_URL_RE = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp",
    "image/ico": ".ico",
    "image/x-icon": ".ico",
}
DEFAULT_EXTENSION = ".jpg"


def extension_for_mime(mime_type: str | None) -> str:
    return MIME_EXTENSIONS.get((mime_type or "").lower(), DEFAULT_EXTENSION)


class UploadStore:
    """Writes blobs under ``upload_dir`` and hands back ``<prefix><uuid><ext>`` paths."""

    def __init__(self, upload_dir: Path | str, url_prefix: str = "/uploads/", max_bytes: int | None = None):
        self._upload_dir = Path(upload_dir)
        self._url_prefix = url_prefix
        self._max_bytes = max_bytes

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    @property
    def url_prefix(self) -> str:
        return self._url_prefix

    def ensure_dir(self) -> None:
        self._upload_dir.mkdir(parents=True, exist_ok=True)

    async def store(self, data: bytes, extension: str = DEFAULT_EXTENSION) -> str:
        """Persist raw bytes and return the relative URL path they are served from."""
        if not data:
            raise InvalidInputError("Upload is empty")
        if self._max_bytes is not None and len(data) > self._max_bytes:
            raise InvalidInputError(
                f"Upload exceeds the {self._max_bytes} byte limit ({len(data)} bytes)"
            )
        if not extension.startswith("."):
            extension = f".{extension}"

        self.ensure_dir()
        filename = f"{uuid.uuid4()}{extension.lower()}"
        await asyncio.to_thread((self._upload_dir / filename).write_bytes, data)
        logger.info("upload_stored", filename=filename, size=len(data))
        return f"{self._url_prefix}{filename}"

    async def save_data_url(self, value: str) -> str:
        """Materialize a base64 data URL. Non-data values are returned unchanged."""
        if not isinstance(value, str) or not value.startswith("data:"):
            return value

        match = _DATA_URL_RE.match(value)
        if not match:
            raise InvalidInputError("Invalid data URL format")
        mime_type, payload = match.group(1), match.group(2)
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInputError(f"Invalid base64 payload in data URL: {exc}") from exc
        return await self.store(data, extension_for_mime(mime_type))

    async def delete(self, url_path: str) -> bool:
        """Remove a previously stored file. Paths outside the upload prefix are ignored."""
        if not url_path or not url_path.startswith(self._url_prefix):
            return False
        path = self._upload_dir / Path(url_path).name
        if not path.exists():
            return False
        await asyncio.to_thread(path.unlink)
        logger.info("upload_deleted", filename=path.name)
        return True

    async def _save_tracked(self, value: Any, stored: Optional[list[str]]) -> Any:
        result = await self.save_data_url(value)
        if stored is not None and result is not value:
            stored.append(result)
        return result

    async def materialize_images(
        self, config: dict[str, Any], stored: Optional[list[str]] = None
    ) -> dict[str, Any]:
        """Return a copy of a feature config with every inline image stored as a file.

        Paths of newly written files are appended to ``stored`` when given.
        """
        if not isinstance(config, dict):
            return config
        result = dict(config)

        images = result.get("images")
        if isinstance(images, list):
            result["images"] = [await self._save_tracked(img, stored) for img in images]

        for key, field in (("gridItems", "iconUrl"), ("sectionBanners", "imageUrl")):
            entries = result.get(key)
            if not isinstance(entries, list):
                continue
            converted = []
            for entry in entries:
                if isinstance(entry, dict) and isinstance(entry.get(field), str):
                    entry = {**entry, field: await self._save_tracked(entry[field], stored)}
                converted.append(entry)
            result[key] = converted
        return result
