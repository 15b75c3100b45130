"""
Reference Image Store

Keeps registered reference images on the local filesystem. The location
returned by save() is what the user store records as the user's facial
image; the reference resolver can read it back, or fetch it over HTTP if
the location is a URL.
"""

import time
import uuid
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def is_remote(location: str) -> bool:
    """True if the location is an HTTP(S) URL."""
    return location.startswith("http://") or location.startswith("https://")


class ImageStore:
    """
    Filesystem store for JPEG reference images.

    Attributes:
        images_dir: Directory where images are written.
    """

    def __init__(self, images_dir: str):
        self.images_dir = Path(images_dir)
        self.images_dir.mkdir(parents=True, exist_ok=True)

    def save(self, data: bytes, prefix: str) -> str:
        """
        Write image bytes under a unique name.

        Args:
            data: JPEG bytes.
            prefix: Readable part of the filename (e.g. the user's name).

        Returns:
            Absolute path of the saved file.
        """
        safe_prefix = "".join(c for c in prefix if c.isalnum()) or "image"
        filename = f"{int(time.time())}_{safe_prefix}_{uuid.uuid4().hex[:8]}.jpg"
        path = self.images_dir / filename
        path.write_bytes(data)
        logger.info(f"Saved reference image: {path}")
        return str(path.resolve())

    def load(self, location: str) -> bytes:
        """
        Read a stored image.

        Raises:
            FileNotFoundError: If the image does not exist.
        """
        return Path(location).read_bytes()

    def delete(self, location: Optional[str]) -> bool:
        """Delete a stored image. Remote or missing locations are ignored."""
        if not location or is_remote(location):
            return False

        path = Path(location)
        if not path.exists():
            return False

        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Failed to delete image {path}: {e}")
            return False

        logger.info(f"Deleted reference image: {path}")
        return True


# Singleton instance for the store
_store_instance: Optional[ImageStore] = None


def get_image_store(images_dir: Optional[str] = None) -> ImageStore:
    """Get or create the singleton ImageStore (directory from config by default)."""
    global _store_instance

    if _store_instance is None:
        if images_dir is None:
            from core.config import get_storage_config, get_project_root
            images_dir = str(get_project_root() / get_storage_config()["images_dir"])
        _store_instance = ImageStore(images_dir)

    return _store_instance
