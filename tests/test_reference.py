"""
Tests for the reference descriptor resolver.
"""

import os
import shutil
import tempfile
from unittest.mock import MagicMock, patch

import httpx
import numpy as np
import pytest

from core.descriptors import BoundingBox, Frame
from core.errors import InputFormatError, ReferenceFetchError
from core.image_store import ImageStore
from core.reference import ReferenceResolver
from core.user_store import UserStore

from conftest import FakeExtractor, make_descriptor

REMOTE_URL = "https://res.cloudinary.com/demo/image/upload/ada.jpg"


@pytest.fixture
def stores():
    temp_dir = tempfile.mkdtemp(prefix="reference_test_")
    user_store = UserStore(
        descriptors_dir=os.path.join(temp_dir, "descriptors"),
        db_path=os.path.join(temp_dir, "test.sqlite"),
    )
    image_store = ImageStore(os.path.join(temp_dir, "images"))
    yield user_store, image_store
    user_store.close()
    shutil.rmtree(temp_dir)


@pytest.fixture
def reference_frame():
    return Frame(descriptor=make_descriptor(d9=0.02), bbox=BoundingBox(10, 10, 90, 90))


class TestReferenceResolver:
    """Tests for ReferenceResolver.fetch_reference_descriptor."""

    def test_cached_descriptor_is_used(self, stores):
        user_store, image_store = stores
        user = user_store.create_user("ada@example.com", "Ada", "L", "/nonexistent.jpg")
        user_store.save_reference_descriptor(user.user_id, make_descriptor(d4=0.1))
        extractor = FakeExtractor({})

        resolver = ReferenceResolver(user_store, image_store, extractor)
        descriptor = resolver.fetch_reference_descriptor(user)

        assert descriptor[4] == pytest.approx(0.1)
        assert extractor.calls == []

    def test_local_image_is_reextracted_and_cached(self, stores, jpeg_bytes, reference_frame):
        user_store, image_store = stores
        location = image_store.save(jpeg_bytes, "ada")
        user = user_store.create_user("ada@example.com", "Ada", "L", location)
        extractor = FakeExtractor({jpeg_bytes: reference_frame})

        resolver = ReferenceResolver(user_store, image_store, extractor)
        descriptor = resolver.fetch_reference_descriptor(user)

        np.testing.assert_array_equal(descriptor, reference_frame.descriptor)
        np.testing.assert_array_equal(
            user_store.load_reference_descriptor(user.user_id), reference_frame.descriptor
        )

        # Second call hits the cache
        resolver.fetch_reference_descriptor(user)
        assert len(extractor.calls) == 1

    def test_missing_local_image(self, stores):
        user_store, image_store = stores
        user = user_store.create_user("ada@example.com", "Ada", "L", "/nonexistent/ada.jpg")

        resolver = ReferenceResolver(user_store, image_store, FakeExtractor({}))
        with pytest.raises(ReferenceFetchError):
            resolver.fetch_reference_descriptor(user)

    def test_remote_image_is_downloaded(self, stores, reference_frame):
        user_store, image_store = stores
        user = user_store.create_user("ada@example.com", "Ada", "L", REMOTE_URL)
        extractor = FakeExtractor({b"remote-jpeg": reference_frame})
        response = MagicMock(status_code=200, content=b"remote-jpeg")

        with patch("core.reference.httpx.get", return_value=response) as mock_get:
            resolver = ReferenceResolver(user_store, image_store, extractor, http_timeout=3.0)
            descriptor = resolver.fetch_reference_descriptor(user)

        mock_get.assert_called_once_with(REMOTE_URL, timeout=3.0, follow_redirects=True)
        np.testing.assert_array_equal(descriptor, reference_frame.descriptor)

    def test_remote_bad_status(self, stores):
        user_store, image_store = stores
        user = user_store.create_user("ada@example.com", "Ada", "L", REMOTE_URL)
        response = MagicMock(status_code=404, content=b"")

        with patch("core.reference.httpx.get", return_value=response):
            resolver = ReferenceResolver(user_store, image_store, FakeExtractor({}))
            with pytest.raises(ReferenceFetchError):
                resolver.fetch_reference_descriptor(user)

    def test_remote_connection_error(self, stores):
        user_store, image_store = stores
        user = user_store.create_user("ada@example.com", "Ada", "L", REMOTE_URL)

        with patch("core.reference.httpx.get", side_effect=httpx.ConnectError("refused")):
            resolver = ReferenceResolver(user_store, image_store, FakeExtractor({}))
            with pytest.raises(ReferenceFetchError):
                resolver.fetch_reference_descriptor(user)

    def test_no_face_in_reference(self, stores, jpeg_bytes):
        user_store, image_store = stores
        location = image_store.save(jpeg_bytes, "ada")
        user = user_store.create_user("ada@example.com", "Ada", "L", location)

        resolver = ReferenceResolver(user_store, image_store, FakeExtractor({}))
        with pytest.raises(ReferenceFetchError):
            resolver.fetch_reference_descriptor(user)

    def test_undecodable_reference(self, stores, jpeg_bytes):
        user_store, image_store = stores
        location = image_store.save(jpeg_bytes, "ada")
        user = user_store.create_user("ada@example.com", "Ada", "L", location)
        extractor = MagicMock()
        extractor.extract.side_effect = InputFormatError("not a JPEG")

        resolver = ReferenceResolver(user_store, image_store, extractor)
        with pytest.raises(ReferenceFetchError):
            resolver.fetch_reference_descriptor(user)

    def test_lazy_defers_fetch(self, stores):
        user_store, image_store = stores
        user = user_store.create_user("ada@example.com", "Ada", "L", "/nonexistent.jpg")
        user_store.save_reference_descriptor(user.user_id, make_descriptor())

        resolver = ReferenceResolver(user_store, image_store, FakeExtractor({}))
        with patch.object(resolver, "fetch_reference_descriptor",
                          wraps=resolver.fetch_reference_descriptor) as fetch:
            reference = resolver.lazy(user)
            fetch.assert_not_called()
            assert reference()[0] == 1.0
            fetch.assert_called_once_with(user)
