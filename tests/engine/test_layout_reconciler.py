"""Tests for the LayoutReconciler — transactional full-layout saves."""

import asyncio
from unittest.mock import patch

import pytest

from homescreen_cms.bridge.contracts import LayoutComponent
from homescreen_cms.engine.content_store import ContentStore
from homescreen_cms.engine.feature_renderer import render_screen
from homescreen_cms.engine.layout_reconciler import LayoutReconciler
from homescreen_cms.errors import ConflictError, InvalidInputError, LayoutSaveError, NotFoundError
from homescreen_cms.models import UserType
from homescreen_cms.storage.upload_store import UploadStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _items(*raw):
    return [LayoutComponent.model_validate(r) for r in raw]


def _banner(title, id=None, **extra):
    item = {"id": id or f"temp-{title}", "type": "banner", "title": title, "config": {"images": []}}
    if id is None:
        item["isNew"] = True
    item.update(extra)
    return item


async def _segment(factory, segment, screen_slug="dashboard"):
    async with factory() as session:
        return await ContentStore(session).list_features(user_type=segment, screen_slug=screen_slug)


async def _screen(factory, slug="dashboard"):
    async with factory() as session:
        return await ContentStore(session).get_screen_by_slug(slug)


@pytest.fixture
def reconciler(db_session_factory):
    return LayoutReconciler(db_session_factory=db_session_factory)


# ---------------------------------------------------------------------------
# Create / order / segment
# ---------------------------------------------------------------------------

class TestCreate:
    @pytest.mark.asyncio
    async def test_new_banner_renders_for_its_segment_only(self, reconciler, db_session_factory, resolve_url):
        item = _banner("Welcome", config={"images": ["/uploads/a.png"]})
        result = await reconciler.save_layout(_items(item), [])

        assert result["success"] is True
        assert result["created"] == 1
        screen = await _screen(db_session_factory)
        pre = render_screen(screen, UserType.PRE_PAID, await _segment(db_session_factory, UserType.PRE_PAID), resolve_url)
        post = render_screen(screen, UserType.POST_PAID, await _segment(db_session_factory, UserType.POST_PAID), resolve_url)

        assert len(pre["components"]) == 1
        assert pre["components"][0]["title"] == "Welcome"
        assert pre["components"][0]["imageUrl"] == "https://cms.example.com/uploads/a.png"
        assert post["components"] == []

    @pytest.mark.asyncio
    async def test_order_equals_index_per_segment(self, reconciler, db_session_factory):
        await reconciler.save_layout(
            _items(_banner("A"), _banner("B"), _banner("C")),
            _items(_banner("X"), _banner("Y")),
        )

        pre = await _segment(db_session_factory, UserType.PRE_PAID)
        post = await _segment(db_session_factory, UserType.POST_PAID)
        assert [(f.title, f.order) for f in pre] == [("A", 0), ("B", 1), ("C", 2)]
        assert [(f.title, f.order) for f in post] == [("X", 0), ("Y", 1)]

    @pytest.mark.asyncio
    async def test_list_segment_overrides_item_user_type(self, reconciler, db_session_factory):
        await reconciler.save_layout([], _items(_banner("Mislabeled", userType="ALL")))

        post = await _segment(db_session_factory, UserType.POST_PAID)
        assert [f.title for f in post] == ["Mislabeled"]
        assert await _segment(db_session_factory, UserType.PRE_PAID) == []

    @pytest.mark.asyncio
    async def test_flat_config_fields_are_merged(self, reconciler, db_session_factory):
        item = {"id": "temp-1", "type": "grid", "title": "Quick", "columns": 3, "gridItems": [{"id": "g1"}]}
        await reconciler.save_layout(_items(item), [])

        (feature,) = await _segment(db_session_factory, UserType.PRE_PAID)
        assert feature.config["columns"] == 3
        assert feature.config["gridItems"] == [{"id": "g1"}]

    @pytest.mark.asyncio
    async def test_default_screen_provisioned(self, reconciler, db_session_factory):
        result = await reconciler.save_layout([], [])
        screen = await _screen(db_session_factory)

        assert result["screenId"] == screen.id
        assert screen.name == "Dashboard"
        assert result["layoutVersion"] == 1

    @pytest.mark.asyncio
    async def test_unknown_screen_id(self, reconciler):
        with pytest.raises(NotFoundError):
            await reconciler.save_layout([], [], screen_id=404)


# ---------------------------------------------------------------------------
# Update / delete / skip
# ---------------------------------------------------------------------------

class TestReconcile:
    @pytest.mark.asyncio
    async def test_resave_of_result_is_a_noop(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(
            _items(
                _banner("A"),
                {"id": "temp-c", "type": "carousel", "title": "Offers", "carouselCards": [{"title": "One"}, {"title": "Two"}]},
            ),
            _items({"id": "temp-g", "type": "grid", "title": "Bills", "config": {"columns": 2}}),
        )

        second = await reconciler.save_layout(
            _items(*first["prePaidItems"]), _items(*first["postPaidItems"])
        )

        assert (second["created"], second["deleted"], second["cardsCreated"], second["cardsDeleted"]) == (0, 0, 0, 0)
        assert second["updated"] == 3

        def _shape(items):
            return [
                (i["id"], i["order"], i["config"], [c["id"] for c in i.get("carouselCards", [])])
                for i in items
            ]

        assert _shape(second["prePaidItems"]) == _shape(first["prePaidItems"])
        assert _shape(second["postPaidItems"]) == _shape(first["postPaidItems"])

    @pytest.mark.asyncio
    async def test_omitted_features_are_deleted_with_carousel(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(
            _items(
                _banner("Keep"),
                {"id": "temp-c", "type": "carousel", "title": "Offers", "carouselCards": [{"title": "One"}]},
            ),
            [],
        )
        keep, carousel_item = first["prePaidItems"]
        carousel_id = carousel_item["carouselId"]

        result = await reconciler.save_layout(_items(keep), [])

        assert result["deleted"] == 1
        assert [f.title for f in await _segment(db_session_factory, UserType.PRE_PAID)] == ["Keep"]
        async with db_session_factory() as session:
            with pytest.raises(NotFoundError):
                await ContentStore(session).get_carousel(carousel_id)

    @pytest.mark.asyncio
    async def test_moving_feature_between_segments(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(_items(_banner("A"), _banner("B")), [])
        a, b = first["prePaidItems"]

        await reconciler.save_layout(_items(b), _items(a))

        assert [(f.title, f.order) for f in await _segment(db_session_factory, UserType.PRE_PAID)] == [("B", 0)]
        assert [(f.title, f.order) for f in await _segment(db_session_factory, UserType.POST_PAID)] == [("A", 0)]

    @pytest.mark.asyncio
    async def test_unknown_persisted_id_skipped(self, reconciler, db_session_factory):
        result = await reconciler.save_layout(_items(_banner("Ghost", id=9999), _banner("Real")), [])

        assert result["skipped"] == [9999]
        assert [f.title for f in await _segment(db_session_factory, UserType.PRE_PAID)] == ["Real"]

    @pytest.mark.asyncio
    async def test_hidden_feature_kept_inactive(self, reconciler, db_session_factory):
        await reconciler.save_layout(_items(_banner("Hidden", show=False)), [])

        (feature,) = await _segment(db_session_factory, UserType.PRE_PAID)
        assert feature.is_active is False

    @pytest.mark.asyncio
    async def test_duplicate_persisted_id_rejected(self, reconciler):
        first = await reconciler.save_layout(_items(_banner("A")), [])
        (a,) = first["prePaidItems"]

        with pytest.raises(InvalidInputError):
            await reconciler.save_layout(_items(a), _items(a))

    @pytest.mark.asyncio
    async def test_type_change_to_carousel_creates_carousel(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(_items(_banner("Soon carousel")), [])
        (item,) = first["prePaidItems"]
        item = {**item, "type": "carousel", "config": {}, "carouselCards": [{"title": "Slide"}]}

        result = await reconciler.save_layout(_items(item), [])

        (saved,) = result["prePaidItems"]
        assert saved["type"] == "carousel"
        assert saved["carouselId"] is not None
        assert [c["title"] for c in saved["carouselCards"]] == ["Slide"]


# ---------------------------------------------------------------------------
# Card reconciliation
# ---------------------------------------------------------------------------

class TestCards:
    @pytest.mark.asyncio
    async def test_remove_first_card_and_append_new(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(
            _items({
                "id": "temp-c",
                "type": "carousel",
                "title": "Offers",
                "carouselCards": [{"title": "One"}, {"title": "Two"}],
            }),
            [],
        )
        (item,) = first["prePaidItems"]
        card_one, card_two = item["carouselCards"]

        result = await reconciler.save_layout(
            _items({
                **item,
                "carouselCards": [card_two, {"id": "temp-card-3", "title": "Three"}],
                "originalCardIds": [card_one["id"], card_two["id"]],
            }),
            [],
        )

        assert (result["cardsDeleted"], result["cardsUpdated"], result["cardsCreated"]) == (1, 1, 1)
        cards = result["prePaidItems"][0]["carouselCards"]
        assert [(c["title"], c["order"]) for c in cards] == [("Two", 0), ("Three", 1)]
        assert cards[0]["id"] == card_two["id"]
        async with db_session_factory() as session:
            with pytest.raises(NotFoundError):
                await ContentStore(session).get_card(card_one["id"])

    @pytest.mark.asyncio
    async def test_carousel_settings_and_card_segment_follow_item(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(
            _items({"id": "temp-c", "type": "carousel", "title": "Offers", "carouselCards": [{"title": "One"}]}),
            [],
        )
        (item,) = first["prePaidItems"]

        result = await reconciler.save_layout(
            [], _items({**item, "title": "Renamed", "autoPlay": False, "interval": 7000})
        )

        (saved,) = result["postPaidItems"]
        assert saved["carousel"]["name"] == "Renamed"
        assert saved["carousel"]["userType"] == "POST_PAID"
        assert (saved["autoPlay"], saved["interval"]) == (False, 7000)
        assert saved["carouselCards"][0]["userType"] == "POST_PAID"

    @pytest.mark.asyncio
    async def test_card_from_another_carousel_is_copied_not_moved(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(
            _items(
                {"id": "temp-a", "type": "carousel", "title": "A", "carouselCards": [{"title": "a1"}]},
                {"id": "temp-b", "type": "carousel", "title": "B", "carouselCards": [{"title": "b1"}]},
            ),
            [],
        )
        a, b = first["prePaidItems"]
        foreign = b["carouselCards"][0]

        result = await reconciler.save_layout(
            _items({**a, "carouselCards": a["carouselCards"] + [foreign]}, b), []
        )

        a_saved, b_saved = result["prePaidItems"]
        assert [c["title"] for c in a_saved["carouselCards"]] == ["a1", "b1"]
        assert a_saved["carouselCards"][1]["id"] != foreign["id"]
        assert [c["id"] for c in b_saved["carouselCards"]] == [foreign["id"]]


# ---------------------------------------------------------------------------
# Concurrency and failure
# ---------------------------------------------------------------------------

class TestTransactions:
    @pytest.mark.asyncio
    async def test_stale_expected_version_conflicts(self, reconciler, db_session_factory):
        await reconciler.save_layout(_items(_banner("A")), [], expected_version=0)

        with pytest.raises(ConflictError):
            await reconciler.save_layout(_items(_banner("B")), [], expected_version=0)

        assert [f.title for f in await _segment(db_session_factory, UserType.PRE_PAID)] == ["A"]
        assert (await _screen(db_session_factory)).layout_version == 1

    @pytest.mark.asyncio
    async def test_invalid_config_midway_writes_nothing(self, reconciler, db_session_factory):
        with pytest.raises(InvalidInputError):
            await reconciler.save_layout(
                _items(_banner("Fine"), {"id": "temp-g", "type": "grid", "title": "Bad", "config": {"columns": 0}}),
                [],
            )

        assert await _segment(db_session_factory, UserType.PRE_PAID) == []
        assert (await _screen(db_session_factory)).layout_version == 0

    @pytest.mark.asyncio
    async def test_unexpected_failure_rolls_back(self, reconciler, db_session_factory):
        first = await reconciler.save_layout(_items(_banner("Original")), [])
        (item,) = first["prePaidItems"]

        with patch.object(ContentStore, "create_feature", side_effect=RuntimeError("disk full")):
            with pytest.raises(LayoutSaveError) as exc_info:
                await reconciler.save_layout(_items({**item, "title": "Changed"}, _banner("New")), [])

        assert exc_info.value.rolled_back is True
        assert "disk full" in exc_info.value.detail
        assert [f.title for f in await _segment(db_session_factory, UserType.PRE_PAID)] == ["Original"]
        assert (await _screen(db_session_factory)).layout_version == 1

    @pytest.mark.asyncio
    async def test_concurrent_saves_on_same_version(self, reconciler, db_session_factory):
        await reconciler.save_layout([], [])

        results = await asyncio.gather(
            reconciler.save_layout(_items(_banner("Left")), [], expected_version=1),
            reconciler.save_layout(_items(_banner("Right")), [], expected_version=1),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ConflictError)]
        saved = [r for r in results if isinstance(r, dict)]
        assert len(conflicts) == 1
        assert len(saved) == 1
        winner = saved[0]["prePaidItems"][0]["title"]
        assert [f.title for f in await _segment(db_session_factory, UserType.PRE_PAID)] == [winner]
        assert (await _screen(db_session_factory)).layout_version == 2

    @pytest.mark.asyncio
    async def test_lock_is_per_screen(self, reconciler):
        assert reconciler._lock_for(1) is reconciler._lock_for(1)
        assert reconciler._lock_for(1) is not reconciler._lock_for(2)


# ---------------------------------------------------------------------------
# Inline images
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_data_urls_materialized(db_session_factory, tmp_path, png_data_url):
    reconciler = LayoutReconciler(db_session_factory, upload_store=UploadStore(tmp_path))

    result = await reconciler.save_layout(
        _items(
            _banner("Inline", config={"images": [png_data_url]}),
            {"id": "temp-c", "type": "carousel", "title": "C", "carouselCards": [{"imageUrl": png_data_url}]},
        ),
        [],
    )

    banner, carousel = result["prePaidItems"]
    stored = banner["config"]["images"][0]
    assert stored.startswith("/uploads/") and stored.endswith(".png")
    assert (tmp_path / stored.rsplit("/", 1)[1]).exists()
    assert carousel["carouselCards"][0]["imageUrl"].startswith("/uploads/")


@pytest.mark.asyncio
async def test_failed_save_removes_materialized_files(db_session_factory, tmp_path, png_data_url):
    reconciler = LayoutReconciler(db_session_factory, upload_store=UploadStore(tmp_path))

    with pytest.raises(InvalidInputError):
        await reconciler.save_layout(
            _items(
                _banner("Inline", config={"images": [png_data_url]}),
                {"id": "temp-c", "type": "carousel", "title": "C", "carouselCards": [{"imageUrl": png_data_url}]},
                {"id": "temp-g", "type": "grid", "title": "Bad", "config": {"columns": 0}},
            ),
            [],
        )

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_unexpected_failure_removes_materialized_files(db_session_factory, tmp_path, png_data_url):
    reconciler = LayoutReconciler(db_session_factory, upload_store=UploadStore(tmp_path))

    with patch.object(ContentStore, "create_feature", side_effect=RuntimeError("disk full")):
        with pytest.raises(LayoutSaveError):
            await reconciler.save_layout(_items(_banner("Inline", config={"images": [png_data_url]})), [])

    assert list(tmp_path.iterdir()) == []
