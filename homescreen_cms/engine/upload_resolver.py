"""Upload Resolver — normalizes stored image references into absolute URLs."""

from typing import Optional


class UploadResolver:
    """Turns stored path references into the single absolute form the mobile app loads.

    Absolute http(s) URLs pass through, upload paths get the public base URL,
    inline ``data:`` values resolve to None (they are materialized to files at
    upload time and never re-encoded here), anything else passes through.
    """

    def __init__(self, base_url: str, upload_prefix: str = "/uploads/"):
        self._base_url = base_url.rstrip("/")
        self._upload_prefix = upload_prefix

    @property
    def base_url(self) -> str:
        return self._base_url

    def resolve(self, value) -> Optional[str]:
        if not value or not isinstance(value, str):
            return None
        if value.startswith("http://") or value.startswith("https://"):
            return value
        if value.startswith(self._upload_prefix):
            return f"{self._base_url}{value}"
        if value.startswith("data:"):
            return None
        return value

    __call__ = resolve
