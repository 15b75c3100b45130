"""
Reference Descriptor Resolver

Finds the descriptor a verification is compared against. The cached
descriptor written at registration is used when present; otherwise the
stored reference image is read back (local file or HTTP(S) URL),
re-extracted, and the result cached for next time.

Any failure along the way is a system fault and raises
ReferenceFetchError, kept separate from biometric rejections.
"""

import logging
from typing import Callable, Optional

import httpx
import numpy as np

from core.errors import InputFormatError, ReferenceFetchError
from core.image_store import ImageStore, is_remote
from core.user_store import UserRecord, UserStore

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT_SEC = 10.0


class ReferenceResolver:
    """
    Resolve a user's reference descriptor.

    Args:
        user_store: Where cached descriptors live.
        image_store: Reads locally stored reference images.
        extractor: Object with extract(bytes) -> Optional[Frame].
        http_timeout: Timeout in seconds for remote image downloads.
    """

    def __init__(self, user_store: UserStore, image_store: ImageStore, extractor,
                 http_timeout: float = DEFAULT_HTTP_TIMEOUT_SEC):
        self.user_store = user_store
        self.image_store = image_store
        self.extractor = extractor
        self.http_timeout = http_timeout

    def fetch_reference_descriptor(self, user: UserRecord) -> np.ndarray:
        """
        Get the reference descriptor for a user.

        Raises:
            ReferenceFetchError: If the image cannot be read or holds no face.
            StorageError: If the descriptor cache cannot be written.
        """
        cached = self.user_store.load_reference_descriptor(user.user_id)
        if cached is not None:
            return cached

        logger.info(f"No cached reference for {user.user_id}, re-extracting from {user.facial_image}")
        data = self._read_image(user.facial_image)

        try:
            frame = self.extractor.extract(data)
        except InputFormatError as e:
            raise ReferenceFetchError(f"Stored reference image is invalid: {e}") from e

        if frame is None:
            raise ReferenceFetchError(f"No face found in reference image of {user.user_id}")

        self.user_store.save_reference_descriptor(user.user_id, frame.descriptor)
        return frame.descriptor

    def lazy(self, user: UserRecord) -> Callable[[], np.ndarray]:
        """Return a callable that fetches the descriptor only when invoked."""
        return lambda: self.fetch_reference_descriptor(user)

    def _read_image(self, location: str) -> bytes:
        if is_remote(location):
            return self._download(location)

        try:
            return self.image_store.load(location)
        except OSError as e:
            logger.error(f"Failed to read reference image {location}: {e}")
            raise ReferenceFetchError(f"Failed to read reference image: {e}") from e

    def _download(self, url: str) -> bytes:
        try:
            response = httpx.get(url, timeout=self.http_timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.error(f"Failed to download reference image from {url}: {e}")
            raise ReferenceFetchError(f"Error downloading reference image: {e}") from e

        if response.status_code != 200:
            logger.error(f"Unexpected status code downloading {url}: {response.status_code}")
            raise ReferenceFetchError(
                f"Error downloading reference image: status {response.status_code}"
            )

        return response.content


# Singleton instance for the resolver
_resolver_instance: Optional[ReferenceResolver] = None


def get_reference_resolver() -> ReferenceResolver:
    """Get or create the singleton ReferenceResolver wired to the shared stores."""
    global _resolver_instance

    if _resolver_instance is None:
        from core.config import get_reference_config
        from core.extractor import get_extractor
        from core.image_store import get_image_store
        from core.user_store import get_user_store

        _resolver_instance = ReferenceResolver(
            user_store=get_user_store(),
            image_store=get_image_store(),
            extractor=get_extractor(),
            http_timeout=float(get_reference_config().get("http_timeout_sec", DEFAULT_HTTP_TIMEOUT_SEC)),
        )

    return _resolver_instance
