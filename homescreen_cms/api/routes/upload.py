"""Upload routes — store images and return the path they are served from."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from ...bridge.contracts import CamelModel
from ...dependencies import get_upload_resolver, get_upload_store
from ...engine.upload_resolver import UploadResolver
from ...errors import InvalidInputError
from ...storage.upload_store import UploadStore, extension_for_mime

router = APIRouter(prefix="/upload", tags=["upload"])


class Base64UploadRequest(CamelModel):
    data_url: Optional[str] = None


def _response(url: str, resolver: UploadResolver) -> dict:
    return {"url": url, "publicUrl": resolver.resolve(url)}


@router.post("/file", status_code=201)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    uploads: UploadStore = Depends(get_upload_store),
    resolver: UploadResolver = Depends(get_upload_resolver),
):
    """Multipart upload under the ``file`` field."""
    if file is None:
        raise InvalidInputError("No file provided")
    extension = Path(file.filename or "").suffix or extension_for_mime(file.content_type)
    url = await uploads.store(await file.read(), extension)
    return _response(url, resolver)


@router.post("/base64", status_code=201)
async def upload_base64(
    body: Base64UploadRequest,
    uploads: UploadStore = Depends(get_upload_store),
    resolver: UploadResolver = Depends(get_upload_resolver),
):
    """Store a ``data:<mime>;base64,...`` URL as a file."""
    if not body.data_url:
        raise InvalidInputError("No dataUrl provided")
    if not body.data_url.startswith("data:"):
        raise InvalidInputError("Invalid data URL format")
    url = await uploads.save_data_url(body.data_url)
    return _response(url, resolver)
