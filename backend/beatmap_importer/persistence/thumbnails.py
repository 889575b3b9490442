"""
Thumbnail cache keyed by archive content hash.

Strategy:
- Decode the background image with Pillow
- Down-sample to fit a 256x256 box, keeping aspect ratio
- Encode PNG into a temp file, then move it into place
- Record the path in the index only after the move succeeded
"""

import io
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .errors import ThumbnailError
from .models import IndexDocument
from .store import IndexStore

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = 256


class ThumbnailCache:
    """Generates each thumbnail once per archive hash."""

    def __init__(self, store: IndexStore, directory: Path, size: int = THUMBNAIL_SIZE):
        self.store = store
        self.directory = Path(directory)
        self.size = size
        self._lock = threading.Lock()

    def path_for(self, content_hash: str) -> Path:
        return self.directory / f"{content_hash}.png"

    def get_cached(self, content_hash: str) -> Optional[Path]:
        """Cached thumbnail path, if the entry exists and its file is present."""
        path = self.store.get_thumbnail(content_hash)
        if path is not None and path.is_file():
            return path
        return None

    def get_or_create(self, content_hash: str, image_bytes: bytes) -> Path:
        """
        Return the thumbnail for an archive, generating it when missing.

        Raises:
            ThumbnailError: image could not be decoded or written
        """
        cached = self.get_cached(content_hash)
        if cached is not None:
            return cached

        data = self._render(content_hash, image_bytes)

        with self._lock:
            # Another worker may have finished the same hash meanwhile
            cached = self.get_cached(content_hash)
            if cached is not None:
                return cached

            target = self.path_for(content_hash)
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(prefix=".thumb.", suffix=".tmp", dir=self.directory)
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(data)
                    os.replace(tmp_name, target)
                except BaseException:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)
                    raise
            except OSError as e:
                raise ThumbnailError(content_hash, f"cannot write thumbnail ({e})") from e

            def mutate(document: IndexDocument) -> None:
                document.thumbnails[content_hash] = str(target)

            self.store.update(mutate)

        logger.debug(f"Generated thumbnail: {target}")
        return target

    def _render(self, content_hash: str, image_bytes: bytes) -> bytes:
        """Decode, shrink and PNG-encode an image."""
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                img.load()
                if img.mode not in ("RGB", "RGBA"):
                    img = img.convert("RGBA" if "transparency" in img.info else "RGB")
                img.thumbnail((self.size, self.size))
                out = io.BytesIO()
                img.save(out, format="PNG")
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            raise ThumbnailError(content_hash, f"cannot decode image ({e})") from e
        return out.getvalue()
