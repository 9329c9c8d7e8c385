"""
Inline JPEG image store
"""
import base64
import io

import pytest
from PIL import Image

from conftest import issue_data, png_bytes
from services.errors import StorageError
from services.image_store import InlineImageStore


def decode(url):
    prefix = "data:image/jpeg;base64,"
    assert url.startswith(prefix)
    return Image.open(io.BytesIO(base64.b64decode(url[len(prefix):])))


def test_small_image_keeps_size():
    image = decode(InlineImageStore().upload(png_bytes(32, 16)))
    assert image.format == "JPEG"
    assert image.size == (32, 16)


def test_wide_image_is_scaled_down():
    image = decode(InlineImageStore(max_width=100).upload(png_bytes(400, 200)))
    assert image.size == (100, 50)


def test_accepts_file_objects_and_alpha():
    buffer = io.BytesIO()
    Image.new("RGBA", (10, 10), (0, 0, 255, 128)).save(buffer, format="PNG")
    buffer.seek(0)
    assert decode(InlineImageStore().upload(buffer)).mode == "RGB"


def test_garbage_is_a_storage_error():
    with pytest.raises(StorageError):
        InlineImageStore().upload(b"definitely not an image")


def test_inline_store_in_issue_creation(user_id, ctx):
    ctx.issues.image_store = InlineImageStore(max_width=8)
    issue = ctx.issues.create_issue(user_id, issue_data(), images=[png_bytes(16, 16)])
    assert decode(issue["images"][0]).size == (8, 8)
