"""
Civic updates: validation, role gate, listing and place search
"""
from datetime import datetime

import pytest
from bson import ObjectId

from auth.session import Identity
from conftest import update_data
from services.errors import ForbiddenError, NotFoundError, ValidationError

ADMIN = Identity(str(ObjectId()), "admin")
CITIZEN = Identity(str(ObjectId()), "user")


def test_create_normalises_dates_and_defaults(ctx):
    update = ctx.updates.create_update(update_data(), actor=ADMIN)
    assert update["startDate"] == datetime(2026, 3, 1, 6, 0)
    assert update["endDate"] == datetime(2026, 3, 1, 18, 0)
    assert update["relatedLinks"] == []
    assert "searchTokens" not in update
    assert ctx.updates.get_update(str(update["_id"]))["title"] == "Scheduled water supply cut"


def test_numeric_pincode_is_stored_as_text(ctx):
    areas = [{"state": "Goa", "pincode": 403001}]
    update = ctx.updates.create_update(update_data(affectedAreas=areas))
    assert update["affectedAreas"] == [{"state": "Goa", "pincode": "403001"}]


@pytest.mark.parametrize("overrides, message", [
    ({"affectedAreas": []}, "At least one affected area"),
    ({"affectedAreas": None}, "At least one affected area"),
    ({"affectedAreas": [{"district": "North Goa"}]}, "affectedAreas\\[0\\].state"),
    ({"type": "festival"}, "Invalid type"),
    ({"source": None}, "source is required"),
    ({"startDate": "soon"}, "Valid startDate"),
    ({"endDate": "2026-02-01T00:00:00Z"}, "endDate cannot be before startDate"),
])
def test_invalid_updates(ctx, overrides, message):
    with pytest.raises(ValidationError, match=message):
        ctx.updates.create_update(update_data(**overrides))
    assert ctx.db.civic_updates.count_documents({}) == 0


def test_citizens_cannot_write(ctx):
    with pytest.raises(ForbiddenError):
        ctx.updates.create_update(update_data(), actor=CITIZEN)
    update = ctx.updates.create_update(update_data(), actor=Identity(str(ObjectId()), "authority"))
    with pytest.raises(ForbiddenError):
        ctx.updates.update_update(update["_id"], {"status": "ongoing"}, actor=CITIZEN)
    with pytest.raises(ForbiddenError):
        ctx.updates.delete_update(update["_id"], actor=CITIZEN)


def test_partial_update_refreshes_search(ctx):
    update = ctx.updates.create_update(update_data())
    changed = ctx.updates.update_update(update["_id"], {"title": "Water tanker schedule", "status": "ongoing"})
    assert changed["status"] == "ongoing"
    assert changed["type"] == "utility"

    assert ctx.updates.list_updates({"search": "tanker"})["totalCount"] == 1
    assert ctx.updates.list_updates({"search": "cut"})["totalCount"] == 0


def test_update_rejects_inverted_dates(ctx):
    update = ctx.updates.create_update(update_data())
    with pytest.raises(ValidationError):
        ctx.updates.update_update(update["_id"], {"endDate": "2026-02-27T00:00:00Z"})


def test_empty_change_returns_current(ctx):
    update = ctx.updates.create_update(update_data())
    assert ctx.updates.update_update(update["_id"], {})["_id"] == update["_id"]


def test_delete(ctx):
    update = ctx.updates.create_update(update_data())
    ctx.updates.delete_update(update["_id"], actor=ADMIN)
    with pytest.raises(NotFoundError):
        ctx.updates.get_update(update["_id"])
    with pytest.raises(NotFoundError):
        ctx.updates.delete_update(update["_id"])


@pytest.mark.parametrize("update_id", ["nope", str(ObjectId())])
def test_unknown_ids(ctx, update_id):
    with pytest.raises(NotFoundError):
        ctx.updates.get_update(update_id)
    with pytest.raises(NotFoundError):
        ctx.updates.update_update(update_id, {"status": "ongoing"})


class TestListing:
    @pytest.fixture
    def notices(self, ctx):
        specs = [
            {"title": "Carnival parade", "type": "event", "startDate": "2026-02-14T10:00:00Z", "endDate": None,
             "affectedAreas": [{"state": "Goa", "district": "North Goa", "areaName": "Panaji"}]},
            {"title": "Landslide warning", "type": "hazard", "source": "automated",
             "startDate": "2026-07-01T00:00:00Z", "endDate": None,
             "affectedAreas": [{"state": "Kerala", "district": "Idukki"}]},
            {"title": "Bridge repair", "type": "project", "startDate": "2026-05-01T00:00:00Z", "endDate": None,
             "affectedAreas": [{"state": "Goa", "district": "South Goa", "areaName": "Margao"},
                               {"state": "Goa", "district": "North Goa"}]},
        ]
        return [ctx.updates.create_update(update_data(**spec)) for spec in specs]

    def test_latest_start_first(self, ctx, notices):
        result = ctx.updates.list_updates()
        assert [u["title"] for u in result["items"]] == ["Landslide warning", "Bridge repair", "Carnival parade"]
        assert result["totalCount"] == 3

    def test_filters(self, ctx, notices):
        assert [u["title"] for u in ctx.updates.list_updates({"source": "automated"})["items"]] == ["Landslide warning"]
        result = ctx.updates.list_updates({"state": "Goa"}, {"sortBy": "title", "limit": 1})
        assert [u["title"] for u in result["items"]] == ["Bridge repair"]
        assert result["totalCount"] == 2

    def test_search_by_location_same_area(self, ctx, notices):
        titles = [u["title"] for u in ctx.updates.search_by_location("Goa", district="North Goa")]
        assert titles == ["Bridge repair", "Carnival parade"]

        # district and areaName must hold for one and the same area
        assert ctx.updates.search_by_location("Goa", district="North Goa", area_name="Margao") == []

    def test_list_filters_may_match_parts_of_different_areas(self, ctx, notices):
        listed = ctx.updates.list_updates({"district": "North Goa", "areaName": "Margao"})
        assert [u["title"] for u in listed["items"]] == ["Bridge repair"]
        assert ctx.updates.search_by_location("Goa", district="North Goa", area_name="Margao") == []

    def test_search_by_location_requires_state(self, ctx, notices):
        with pytest.raises(ValidationError):
            ctx.updates.search_by_location("  ")

    def test_search_by_location_unknown_place(self, ctx, notices):
        assert ctx.updates.search_by_location("Sikkim") == []
