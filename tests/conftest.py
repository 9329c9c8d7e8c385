"""
Test setup and fixtures

Every test gets its own in-memory MongoDB (mongomock) behind a fully wired
CivicContext, so no server is needed.
"""
import io

import mongomock
import pytest
from bson import ObjectId
from PIL import Image

from app import build_context
from config import Settings


def make_settings(**overrides):
    values = {"database_name": "civic-lens-test", "dashboard_workers": 2}
    values.update(overrides)
    return Settings(**values)


def new_context(image_store=None, points_ledger=None, **overrides):
    """Fresh context on a fresh in-memory client (usable inside hypothesis tests)"""
    return build_context(
        make_settings(**overrides),
        client=mongomock.MongoClient(),
        image_store=image_store,
        points_ledger=points_ledger,
    )


def issue_data(**overrides):
    data = {
        "title": "Deep pothole near the market",
        "description": "Two wheelers keep skidding here after rain",
        "category": "pothole",
        "severity": "high",
        "location": {
            "coordinates": [73.8278, 15.4909],
            "state": "Goa",
            "district": "North Goa",
            "pincode": "403001",
            "address": "MG Road, Panaji",
        },
    }
    data.update(overrides)
    return data


def update_data(**overrides):
    data = {
        "type": "utility",
        "title": "Scheduled water supply cut",
        "description": "Pipeline maintenance in the old city",
        "affectedAreas": [{"state": "Goa", "district": "North Goa", "areaName": "Fontainhas"}],
        "startDate": "2026-03-01T06:00:00Z",
        "endDate": "2026-03-01T18:00:00Z",
        "status": "upcoming",
        "severity": "medium",
        "source": "government",
    }
    data.update(overrides)
    return data


def png_bytes(width=32, height=16, color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeImageStore:
    """Blob storage double: fails on b'fail', remembers uploads and discards"""

    def __init__(self):
        self.uploaded = []
        self.discarded = []

    def upload(self, payload):
        if payload == b"fail":
            raise IOError("storage unavailable")
        url = f"https://img.example.org/{len(self.uploaded)}.jpg"
        self.uploaded.append(url)
        return url

    def discard(self, url):
        self.discarded.append(url)


@pytest.fixture
def image_store():
    return FakeImageStore()


@pytest.fixture
def ctx(image_store):
    context = new_context(image_store=image_store)
    yield context
    context.close()


def add_user(ctx, name="Asha", points=0, role="user", email=None):
    user = ctx.users.create_user({
        "name": name,
        "email": email or f"{name.lower().replace(' ', '.')}.{ObjectId()}@example.org",
        "password": "not-a-real-hash",
        "role": role,
    })
    if points:
        ctx.users.add_points(user["_id"], points)
    return user["_id"]


@pytest.fixture
def user_id(ctx):
    return add_user(ctx, "Asha")


@pytest.fixture
def other_user_id(ctx):
    return add_user(ctx, "Ravi")
