"""Exceptions raised by pypoly1305.

All of them signal a caller contract violation. They are raised before any
state is mutated or any output byte is written, so an instance stays usable
once the arguments are corrected.
"""

__all__ = ["Poly1305Error", "InvalidKeyLength", "InvalidArgument", "OutputTooShort"]


class Poly1305Error(Exception):
    """Base class for all pypoly1305 errors."""


class InvalidKeyLength(Poly1305Error, TypeError):
    """The one-time key is not exactly 32 bytes."""


class InvalidArgument(Poly1305Error, ValueError):
    """A buffer, offset or length argument is unusable."""


class OutputTooShort(InvalidArgument):
    """Fewer than 16 bytes are available at the requested output offset."""
