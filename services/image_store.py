"""
Blob storage for issue images

The core only needs ``upload(payload) -> url``. ``discard(url)`` is optional
and lets issue creation clean up after a failed batch.
"""
import base64
import io
from typing import Protocol, Union

from PIL import Image, UnidentifiedImageError

from services.errors import StorageError

ImagePayload = Union[bytes, bytearray, io.IOBase]


class ImageStore(Protocol):
    def upload(self, payload: ImagePayload) -> str:
        ...


def _as_stream(payload: ImagePayload):
    if isinstance(payload, (bytes, bytearray)):
        return io.BytesIO(payload)
    return payload


class InlineImageStore:
    """
    Keeps images inside the issue record as JPEG data URLs.

    Images wider than ``max_width`` are scaled down, everything is re-encoded
    as RGB JPEG so the stored size stays predictable.
    """

    def __init__(self, max_width: int = 800, quality: int = 85):
        self.max_width = max_width
        self.quality = quality

    def upload(self, payload: ImagePayload) -> str:
        try:
            image = Image.open(_as_stream(payload))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise StorageError(f"Image upload failed: {e}") from e

        if image.width > self.max_width:
            ratio = self.max_width / image.width
            new_height = max(1, int(image.height * ratio))
            image = image.resize((self.max_width, new_height), Image.Resampling.LANCZOS)
        if image.mode != "RGB":
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=self.quality)
        img_str = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/jpeg;base64,{img_str}"
