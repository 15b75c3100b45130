"""
Error Taxonomy

Exceptions raised by the core. Biometric outcomes (identity mismatch,
not live, no match) are not exceptions: they are MatchVerdict values
returned by the decision engine. Everything here is either bad input
or a system fault.
"""


class FaceWidgetError(Exception):
    """Base class for all core errors."""


class InputFormatError(FaceWidgetError):
    """Image bytes are not a decodable JPEG."""


class NoFaceFoundError(FaceWidgetError):
    """No single face could be found in an image."""


class ExtractionError(FaceWidgetError):
    """The face recognition library failed internally."""


class BurstSizeError(FaceWidgetError):
    """A verification burst does not contain exactly BURST_SIZE frames."""


class ReferenceFetchError(FaceWidgetError):
    """The stored reference image could not be fetched or re-extracted."""


class StorageError(FaceWidgetError):
    """The user store failed to read or write."""


class UserNotFoundError(FaceWidgetError):
    """No user account matches the lookup key."""


class DuplicateUserError(FaceWidgetError):
    """A user with the same email is already registered."""
