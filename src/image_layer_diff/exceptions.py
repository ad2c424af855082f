"""Custom exceptions for the image layer diff engine."""


class LayerDiffError(Exception):
    """Base exception for all layer diff errors."""

    pass


class InvalidRangeError(LayerDiffError):
    """Raised when a tree index key references layers outside the image."""

    pass


class TraversalError(LayerDiffError):
    """Raised when a visitor fails during a depth-first tree walk."""

    pass


class MalformedPathError(LayerDiffError):
    """Raised when a tree path is empty or has an invalid segment."""

    pass


class TarReadError(LayerDiffError):
    """Raised when unable to read or parse an image tar file."""

    pass


class ValidationError(LayerDiffError):
    """Raised when image metadata is structurally invalid."""

    pass
