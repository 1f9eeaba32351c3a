"""Media store for job images.

Images are uploaded once, at job create/update time, and the job only keeps
the returned references.
"""

import logging
import mimetypes
import re
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

import httpx

from lak.jobs.config import JobsConfig
from lak.jobs.errors import NotFoundError, RepositoryTimeout, RepositoryUnavailable, ValidationError
from lak.jobs.retry import retry_on_timeout

logger = logging.getLogger(__name__)

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9_-]")


@dataclass
class ImageUpload:
    """Raw image bytes received from a client."""

    content: bytes
    content_type: str
    filename: Optional[str] = None


@dataclass
class StoredImage:
    """Image bytes fetched back from the media store."""

    content: bytes
    content_type: str


def validate_images(images: Optional[Sequence[ImageUpload]], config: JobsConfig) -> List[ImageUpload]:
    """Check image count, type and size before anything is uploaded."""
    images = list(images or [])
    if len(images) > config.max_images_per_job:
        raise ValidationError(f"Too many images (max {config.max_images_per_job})")
    for image in images:
        if not (image.content_type or "").startswith("image/"):
            raise ValidationError(f"Unsupported image type: {image.content_type or 'unknown'}")
        if not image.content:
            raise ValidationError("Image file is empty")
        if len(image.content) > config.max_image_bytes:
            raise ValidationError(f"Image too large (max {config.max_image_bytes} bytes)")
    return images


def build_reference(owner_id: str, image: ImageUpload) -> str:
    """Build a unique storage path for an image."""
    extension = mimetypes.guess_extension(image.content_type) or ""
    if not extension and image.filename and "." in image.filename:
        extension = "." + _UNSAFE_PATH_CHARS.sub("", image.filename.rsplit(".", 1)[1])
    owner = _UNSAFE_PATH_CHARS.sub("_", owner_id)[:64]
    return f"jobs/{owner}/{uuid.uuid4().hex}{extension}"


class MediaStore(Protocol):
    """Protocol for image storage backends."""

    def put(self, owner_id: str, image: ImageUpload) -> str:
        """Store an image. Returns its reference."""
        ...

    def get(self, reference: str) -> StoredImage:
        """Fetch an image by reference. Raises NotFoundError if missing."""
        ...

    def delete(self, references: Sequence[str]) -> None:
        """Remove images. Unknown references are ignored."""
        ...


class InMemoryMediaStore:
    """In-memory media store for testing and local development."""

    def __init__(self):
        self._images: Dict[str, StoredImage] = {}
        self._lock = threading.Lock()

    def put(self, owner_id: str, image: ImageUpload) -> str:
        reference = build_reference(owner_id, image)
        with self._lock:
            self._images[reference] = StoredImage(content=image.content, content_type=image.content_type)
        return reference

    def get(self, reference: str) -> StoredImage:
        with self._lock:
            stored = self._images.get(reference)
        if stored is None:
            raise NotFoundError("Image not found")
        return stored

    def delete(self, references: Sequence[str]) -> None:
        with self._lock:
            for reference in references:
                self._images.pop(reference, None)


class SupabaseMediaStore:
    """Media store backed by a Supabase Storage bucket.

    Args:
        client: Supabase client (built with a storage timeout).
        bucket: Bucket name.
        retry_backoff: Seconds to wait before retrying a timed out call.
    """

    def __init__(self, client, bucket: str, retry_backoff: float = 0.25):
        self.client = client
        self.bucket = bucket
        self.retry_backoff = retry_backoff

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    @retry_on_timeout
    def put(self, owner_id: str, image: ImageUpload) -> str:
        reference = build_reference(owner_id, image)
        try:
            self._bucket().upload(reference, image.content, {"content-type": image.content_type})
        except httpx.TimeoutException as e:
            raise RepositoryTimeout("Media store timed out", context=str(e)) from e
        except httpx.TransportError as e:
            raise RepositoryUnavailable("Media store unavailable", context=str(e)) from e
        return reference

    @retry_on_timeout
    def get(self, reference: str) -> StoredImage:
        try:
            content = self._bucket().download(reference)
        except httpx.TimeoutException as e:
            raise RepositoryTimeout("Media store timed out", context=str(e)) from e
        except httpx.TransportError as e:
            raise RepositoryUnavailable("Media store unavailable", context=str(e)) from e
        except Exception as e:
            text = str(e).lower()
            if "not found" in text or "404" in text:
                raise NotFoundError("Image not found") from e
            raise
        content_type = mimetypes.guess_type(reference)[0] or "application/octet-stream"
        return StoredImage(content=content, content_type=content_type)

    @retry_on_timeout
    def delete(self, references: Sequence[str]) -> None:
        if not references:
            return
        try:
            self._bucket().remove(list(references))
        except httpx.TimeoutException as e:
            raise RepositoryTimeout("Media store timed out", context=str(e)) from e
        except httpx.TransportError as e:
            raise RepositoryUnavailable("Media store unavailable", context=str(e)) from e
