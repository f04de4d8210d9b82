"""
Exception types raised by the conversion pipeline.

Every failure is fatal for the call that raised it: no partial mesh, no
partial settings text and no partial archive is ever returned.
"""


class ConversionError(Exception):
    """Base class for all project conversion failures."""


class MalformedMeshError(ConversionError):
    """Raised when a mesh buffer is unparseable or size-inconsistent."""


class UnsupportedValueError(ConversionError):
    """Raised when a settings value fails its type, range or enum constraint."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class PackagingError(ConversionError):
    """Raised when the project archive cannot be built."""


class SourceError(ConversionError):
    """Raised when a mesh or settings source cannot be read or fetched."""
