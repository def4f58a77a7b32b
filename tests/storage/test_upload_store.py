"""Tests for the UploadStore — local image storage and data URL materialization."""

import pytest

from homescreen_cms.errors import InvalidInputError
from homescreen_cms.storage.upload_store import UploadStore, extension_for_mime


@pytest.fixture
def store(tmp_path):
    return UploadStore(tmp_path / "uploads", max_bytes=1024)


class TestStore:
    @pytest.mark.asyncio
    async def test_store_writes_file_under_prefix(self, store):
        path = await store.store(b"abc", "PNG")

        assert path.startswith("/uploads/")
        assert path.endswith(".png")
        assert (store.upload_dir / path.rsplit("/", 1)[1]).read_bytes() == b"abc"

    @pytest.mark.asyncio
    async def test_empty_rejected(self, store):
        with pytest.raises(InvalidInputError):
            await store.store(b"")

    @pytest.mark.asyncio
    async def test_size_limit(self, store):
        with pytest.raises(InvalidInputError):
            await store.store(b"x" * 2048, ".jpg")

    @pytest.mark.asyncio
    async def test_delete(self, store):
        path = await store.store(b"abc", ".gif")

        assert await store.delete(path) is True
        assert await store.delete(path) is False
        assert await store.delete("https://cdn.example.com/x.gif") is False


class TestDataUrls:
    @pytest.mark.asyncio
    async def test_save_data_url(self, store, png_data_url):
        path = await store.save_data_url(png_data_url)

        assert path.endswith(".png")
        assert (store.upload_dir / path.rsplit("/", 1)[1]).read_bytes().startswith(b"\x89PNG")

    @pytest.mark.asyncio
    async def test_non_data_values_unchanged(self, store):
        assert await store.save_data_url("/uploads/a.png") == "/uploads/a.png"
        assert await store.save_data_url("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"

    @pytest.mark.asyncio
    async def test_malformed_data_url(self, store):
        with pytest.raises(InvalidInputError):
            await store.save_data_url("data:image/png,notbase64")

    @pytest.mark.asyncio
    async def test_materialize_images(self, store, png_data_url):
        config = {
            "images": [png_data_url, "/uploads/kept.png"],
            "gridItems": [{"id": "a", "iconUrl": png_data_url}, {"id": "b"}],
            "sectionBanners": [{"id": "s", "imageUrl": "https://cdn.example.com/s.png"}],
            "columns": 2,
        }

        result = await store.materialize_images(config)

        assert result["images"][0].startswith("/uploads/")
        assert result["images"][1] == "/uploads/kept.png"
        assert result["gridItems"][0]["iconUrl"].startswith("/uploads/")
        assert result["gridItems"][1] == {"id": "b"}
        assert result["sectionBanners"][0]["imageUrl"] == "https://cdn.example.com/s.png"
        assert result["columns"] == 2
        # Input left untouched
        assert config["images"][0] == png_data_url

    @pytest.mark.asyncio
    async def test_materialize_records_new_files(self, store, png_data_url):
        stored = []
        config = {
            "images": [png_data_url, "/uploads/kept.png"],
            "gridItems": [{"id": "a", "iconUrl": png_data_url}],
        }

        result = await store.materialize_images(config, stored)

        assert stored == [result["images"][0], result["gridItems"][0]["iconUrl"]]
        for path in stored:
            assert await store.delete(path) is True


@pytest.mark.parametrize(
    "mime, ext",
    [("image/png", ".png"), ("image/JPEG", ".jpg"), ("image/svg+xml", ".svg"), ("application/zip", ".jpg"), (None, ".jpg")],
)
def test_extension_for_mime(mime, ext):
    assert extension_for_mime(mime) == ext
