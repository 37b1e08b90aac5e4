"""Utility helpers for pypoly1305.

Buffers are viewed through cffi rather than copied: caller data is borrowed
for the duration of a call and internal state lives in cffi-owned arrays
that can be wiped in place. Secret containers that only offer indexing are
staged through a scratch array which is wiped before the call returns.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Protocol, Union, runtime_checkable

from ._loader import ffi, libc
from .errors import InvalidArgument, OutputTooShort

__all__ = [
    "Buffer",
    "SecretBuffer",
    "as_cdata",
    "borrowed",
    "buffer_length",
    "check_region",
    "is_indexed_secret",
    "secure_zero",
]

try:
    from collections.abc import Buffer
except ImportError:  # Python < 3.12
    Buffer = Union[bytes, bytearray, memoryview]  # type: ignore[misc]


@runtime_checkable
class SecretBuffer(Protocol):
    """Anything indexable as bytes that can wipe itself."""

    def __len__(self) -> int: ...

    def __getitem__(self, index): ...

    def __setitem__(self, index, value) -> None: ...

    def zero(self) -> None: ...


def _check_usable(buf) -> None:
    if buf is None:
        raise InvalidArgument("buffer must not be None")
    if getattr(buf, "closed", False) is True:
        raise InvalidArgument(f"{type(buf).__name__} has been closed")


def is_indexed_secret(buf) -> bool:
    """True for a SecretBuffer reachable only through len() and indexing."""
    if getattr(buf, "closed", False) is True:
        return False
    if hasattr(buf, "cdata") or not isinstance(buf, SecretBuffer):
        return False
    try:
        memoryview(buf).release()
    except TypeError:
        return True
    return False


def as_cdata(buf, *, writable: bool = False):
    """Return an ``unsigned char[]`` cdata over ``buf`` without copying.

    ``buf`` may be any buffer-protocol object or anything exposing a cffi
    array through ``cdata`` (such as :class:`~pypoly1305.secure.SecureBuffer`).

    Raises:
        InvalidArgument: If ``buf`` is None, closed, not a buffer, or
            read-only while ``writable`` is requested.
    """
    _check_usable(buf)
    cdata = getattr(buf, "cdata", None)
    if cdata is not None:
        return cdata
    try:
        return ffi.from_buffer("unsigned char[]", buf, require_writable=writable)
    except (TypeError, BufferError) as e:
        what = "writable buffer" if writable else "bytes-like object"
        raise InvalidArgument(f"expected a {what}, got {type(buf).__name__}") from e


@contextmanager
def borrowed(buf, *, writable: bool = False) -> Iterator:
    """Borrow ``buf`` as ``unsigned char[]`` cdata for the duration of a block.

    Plain :class:`SecretBuffer` objects are copied into a scratch array
    (and copied back when ``writable``); the scratch is wiped on every exit.
    """
    if not is_indexed_secret(buf):
        yield as_cdata(buf, writable=writable)
        return
    n = len(buf)
    scratch = ffi.new("unsigned char[]", max(n, 1))
    try:
        for i in range(n):
            scratch[i] = buf[i]
        yield scratch
        if writable:
            for i in range(n):
                buf[i] = scratch[i]
    finally:
        secure_zero(scratch)


def buffer_length(buf) -> int:
    """Length of ``buf`` in bytes."""
    _check_usable(buf)
    if hasattr(buf, "cdata") or is_indexed_secret(buf):
        return len(buf)
    try:
        return memoryview(buf).nbytes
    except TypeError as e:
        raise InvalidArgument(
            f"expected a bytes-like object, got {type(buf).__name__}"
        ) from e


def check_region(size: int, offset: int, length: int, *, output: bool = False) -> None:
    """Validate that ``[offset, offset + length)`` lies within ``size`` bytes.

    Raises:
        OutputTooShort: If ``output`` is set and the region overruns the buffer.
        InvalidArgument: For any other bad offset or length.
    """
    if not isinstance(offset, int) or isinstance(offset, bool):
        raise InvalidArgument("offset must be an integer")
    if not isinstance(length, int) or isinstance(length, bool):
        raise InvalidArgument("length must be an integer")
    if offset < 0:
        raise InvalidArgument("offset must not be negative")
    if output and offset + length > size:
        raise OutputTooShort(
            f"output needs {length} bytes at offset {offset}, "
            f"only {max(size - offset, 0)} available"
        )
    if offset > size:
        raise InvalidArgument(f"offset {offset} beyond buffer of {size} bytes")
    if length < 0:
        raise InvalidArgument("length must not be negative")
    if offset + length > size:
        raise InvalidArgument(
            f"offset + length ({offset + length}) exceeds buffer of {size} bytes"
        )


def secure_zero(cdata, size: int | None = None) -> None:
    """Wipe a cffi array in place with the C runtime's memset."""
    n = ffi.sizeof(cdata) if size is None else size
    if n:
        libc.memset(cdata, 0, n)
