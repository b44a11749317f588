# meter_app/services/image_store.py

from __future__ import annotations

import logging
import os
import re
import secrets
import time
from typing import Optional

import aiofiles
import aiofiles.os

from meter_app.core.config import settings
from meter_app.core.exceptions import StorageWriteError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(name: Optional[str]) -> str:
    base = os.path.basename((name or "").replace("\\", "/"))
    base = _UNSAFE_CHARS.sub("_", base).strip("._")
    return base[:120] or "image"


class ImageStore:
    """
    Writes meter photos below ``upload_dir`` and hands back a public URL.

    The directory is mounted by the app at ``media_path``, so the URL resolves
    without any further authorization.
    """

    def __init__(
        self,
        upload_dir: str,
        bucket: str = "meter-images",
        public_base_url: str = "",
        media_path: str = "/media",
    ):
        self.upload_dir = upload_dir
        self.bucket = bucket.strip("/")
        self.public_base_url = (public_base_url or "").rstrip("/")
        self.media_path = "/" + media_path.strip("/")

    def build_key(self, owner_id: str, original_name: Optional[str]) -> str:
        # owner + ns timestamp + random token: unique across concurrent uploads of one owner
        return f"{self.bucket}/{owner_id}/{time.time_ns()}-{secrets.token_hex(4)}-{safe_filename(original_name)}"

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}{self.media_path}/{key}"

    def path_for(self, key: str) -> Optional[str]:
        """Filesystem path of a stored key, or None if missing or outside the upload dir."""
        root = os.path.realpath(self.upload_dir)
        path = os.path.realpath(os.path.join(root, *key.split("/")))
        if os.path.commonpath([root, path]) != root or not os.path.isfile(path):
            return None
        return path

    async def store(
        self,
        owner_id: str,
        raw_bytes: bytes,
        original_name: Optional[str],
        content_type: Optional[str] = None,
    ) -> str:
        if not owner_id:
            raise StorageWriteError("Failed to upload image: missing owner")

        key = self.build_key(owner_id, original_name)
        path = os.path.join(self.upload_dir, *key.split("/"))

        try:
            await aiofiles.os.makedirs(os.path.dirname(path), exist_ok=True)
            async with aiofiles.open(path, "xb") as f:
                await f.write(raw_bytes)
        except OSError as e:
            logger.error(f"Image write failed for {key}: {e}")
            raise StorageWriteError(f"Failed to upload image: {e.strerror or e}") from e

        url = self.public_url(key)
        logger.info(f"Stored image {key} ({len(raw_bytes)} bytes, {content_type or 'unknown type'})")
        return url


_store: Optional[ImageStore] = None


def get_image_store() -> ImageStore:
    global _store
    if _store is None:
        _store = ImageStore(
            upload_dir=settings.UPLOAD_DIR,
            bucket=settings.IMAGE_BUCKET,
            public_base_url=settings.PUBLIC_BASE_URL,
            media_path=settings.MEDIA_URL_PATH,
        )
    return _store
