"""Secret byte containers with guaranteed wiping.

:class:`SecureBuffer` keeps its bytes in a cffi-owned ``unsigned char[]``:
the interpreter never relocates or copies that storage, it can be page
locked with ``mlock`` and it is wiped with ``memset`` on release.

Usage:
    with secure_buffer(32) as key:
        key[:] = read_key_material()
        tag = mac(key, message)
    # key is zeroed here, also when an exception escaped the block
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from ._loader import MLOCK_DEFAULT, ffi, libc
from .util import Buffer, SecretBuffer, secure_zero

__all__ = ["SecretBuffer", "SecureBuffer", "secure_buffer"]

logger = logging.getLogger(__name__)


class SecureBuffer:
    """Fixed-size secret buffer that is zeroed when closed."""

    __slots__ = ("_buf", "_size", "_locked", "_closed")

    def __init__(self, size_or_data: int | Buffer, *, lock: bool | None = None):
        f"""Allocate a secure buffer.

        Args:
            size_or_data: Size in bytes of a zero-filled buffer, or bytes-like
                data to copy in. The caller still owns and must wipe the source.
            lock: Lock the pages in RAM (default {MLOCK_DEFAULT=}).

        Raises:
            ValueError: If the size is negative.
        """
        if isinstance(size_or_data, int):
            if size_or_data < 0:
                raise ValueError("size must not be negative")
            data = None
            size = size_or_data
        else:
            data = memoryview(size_or_data).cast("B")
            size = data.nbytes
        # Never allocate zero bytes so that cdata stays a real array
        self._buf = ffi.new("unsigned char[]", max(size, 1))
        self._size = size
        self._closed = False
        self._locked = False
        if data is not None and size:
            ffi.memmove(self._buf, data, size)
        if lock is None:
            lock = MLOCK_DEFAULT
        if lock and size:
            self._locked = libc.mlock(self._buf, size) == 0
            if not self._locked:
                logger.debug("mlock of %d bytes failed: errno %d", size, ffi.errno)

    @property
    def cdata(self):
        """The backing ``unsigned char[]``; borrow it, never keep it."""
        self._check_open()
        return self._buf

    @property
    def locked(self) -> bool:
        """True if the pages are currently locked in RAM."""
        return self._locked

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("operation on closed SecureBuffer")

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, index):
        self._check_open()
        if isinstance(index, slice):
            return bytes(ffi.buffer(self._buf, self._size)[index])
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("SecureBuffer index out of range")
        return self._buf[index]

    def __setitem__(self, index, value) -> None:
        self._check_open()
        if isinstance(index, slice):
            ffi.buffer(self._buf, self._size)[index] = value
            return
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("SecureBuffer index out of range")
        self._buf[index] = value

    def view(self) -> memoryview:
        """Writable memoryview over the secret bytes (no copy)."""
        self._check_open()
        return memoryview(ffi.buffer(self._buf, self._size))

    def tobytes(self) -> bytes:
        """Return an immutable copy. The copy cannot be wiped later."""
        self._check_open()
        return ffi.buffer(self._buf, self._size)[:]

    def hex(self) -> str:
        return self.tobytes().hex()

    def zero(self) -> None:
        """Overwrite every byte with zero."""
        if not self._closed:
            secure_zero(self._buf)

    def close(self) -> None:
        """Zero the buffer and release the page lock. Safe to call twice."""
        if self._closed:
            return
        secure_zero(self._buf)
        if self._locked:
            libc.munlock(self._buf, self._size)
            self._locked = False
        self._closed = True

    def __enter__(self) -> "SecureBuffer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __del__(self) -> None:
        # Last resort only; deterministic release goes through close()
        if not getattr(self, "_closed", True):
            self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "locked" if self._locked else "open"
        return f"<SecureBuffer size={self._size} {state}>"


@contextmanager
def secure_buffer(
    size_or_data: int | Buffer, *, lock: bool | None = None
) -> Iterator[SecureBuffer]:
    """Scope guard yielding a :class:`SecureBuffer` that is closed on exit."""
    buf = SecureBuffer(size_or_data, lock=lock)
    try:
        yield buf
    finally:
        buf.close()
