"""Exceptions raised by the quilter core.

All of them subclass ``ValueError`` so callers that already guard image
loading with ``except ValueError`` keep working.
"""


class QuiltError(ValueError):
    pass


class MalformedInputError(QuiltError):
    """Pixel buffer or tile entry does not have the expected shape or values."""


class InvalidLayoutError(QuiltError):
    """Grid dimensions or a stored assignment that cannot describe a quilt."""


class CapacityMismatchError(QuiltError):
    """Total tile count differs from the number of grid cells."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Grid needs {required} tiles but the pool holds {available}"
        )


class DecodeFailure(QuiltError):
    """An image file could not be opened or decoded."""
