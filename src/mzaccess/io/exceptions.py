"""
Exceptions raised by spectrum readers.

Access-layer failures derive from :class:`ScanAccessError`. They also derive
from the builtin exception a caller would naturally catch (``KeyError`` for a
missing record, ``OSError`` for a failed seek or read).
"""

from typing import Optional


class ScanAccessError(Exception):
    """Base class for random-access failures."""


class ScanNotFoundError(ScanAccessError, KeyError):
    """The requested ID, position or time does not resolve to a record."""

    def __init__(self, key: object):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Spectrum not found: {self.key!r}"


class ScanIOError(ScanAccessError, OSError):
    """
    A seek or read on the underlying stream failed.

    The original exception, when there is one, is available as
    ``__cause__``.
    """

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset
