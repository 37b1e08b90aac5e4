"""Poly1305 one-time authenticator (RFC 8439).

The polynomial is evaluated in radix 2^26 with five 32-bit limbs, following
the donna-style "unrolled" 32-bit layout. All limb arithmetic emulates C
unsigned integers: every intermediate is masked back to 32 or 64 bits.

Key schedule, accumulator and the pending block are stored in cffi-owned
arrays so that :meth:`Poly1305.close` can wipe them in place.

.. warning::
   A Poly1305 key must authenticate ONE message only. :meth:`Poly1305.final`
   resets the accumulator but keeps the key so the instance *can* be reused;
   doing so with the same key lets an attacker forge tags. Deriving a fresh
   key per message (e.g. from ChaCha20 block 0) is the caller's job.
"""

from __future__ import annotations

import hmac

from ._loader import ffi
from .errors import InvalidArgument, InvalidKeyLength
from .util import (
    Buffer,
    borrowed,
    buffer_length,
    check_region,
    is_indexed_secret,
    secure_zero,
)

KEYBYTES = 32
TAGBYTES = 16
BLOCKBYTES = 16

_M26 = 0x3FFFFFF
_M32 = 0xFFFFFFFF
_M64 = 0xFFFFFFFFFFFFFFFF


def _le32(p, off: int) -> int:
    return p[off] | (p[off + 1] << 8) | (p[off + 2] << 16) | (p[off + 3] << 24)


def _store_le32(p, off: int, n: int) -> None:
    p[off] = n & 0xFF
    p[off + 1] = (n >> 8) & 0xFF
    p[off + 2] = (n >> 16) & 0xFF
    p[off + 3] = (n >> 24) & 0xFF


def mac(key: Buffer, data: Buffer, into: Buffer | None = None) -> bytearray | memoryview:
    f"""Compute a Poly1305 tag for the given data in one shot.

    Args:
        key: One-time key ({KEYBYTES=}).
        data: Data to authenticate.
        into: Buffer to write the tag into (default: bytearray created).

    Returns:
        Tag bytes as bytearray if into not provided, memoryview of into otherwise.
    """
    with Poly1305(key) as state:
        state.update(data)
        return state.final(into)


def verify(key: Buffer, data: Buffer, tag: Buffer) -> None:
    """Check ``tag`` against data in constant time.

    Raises:
        InvalidArgument: If the tag is not 16 bytes.
        ValueError: If verification fails.
    """
    with Poly1305(key) as state:
        state.update(data)
        state.verify(tag)


class Poly1305:
    """Incremental Poly1305 state.

    Usage:
        with Poly1305(key) as p:
            p.update(header)
            p.update(body)
            tag = p.final()

    Input can be split across any number of update() calls; the tag only
    depends on the concatenated bytes. Instances are not thread safe.
    """

    __slots__ = ("_r", "_s", "_k", "_h", "_block", "_offset", "_closed")

    digest_size = TAGBYTES
    block_size = BLOCKBYTES

    def __init__(self, key: Buffer, _other: "Poly1305 | None" = None) -> None:
        f"""Load a one-time key.

        Args:
            key: Key ({KEYBYTES=}); bytes-like or a SecureBuffer.

        Raises:
            InvalidKeyLength: If the key is not exactly {KEYBYTES} bytes.
        """
        if _other is not None:
            _other._check_open()
        elif buffer_length(key) != KEYBYTES:
            raise InvalidKeyLength(f"key length must be {KEYBYTES}")
        self._r = ffi.new("uint32_t[5]")
        self._s = ffi.new("uint32_t[4]")
        self._k = ffi.new("uint32_t[4]")
        self._h = ffi.new("uint32_t[5]")
        self._block = ffi.new("unsigned char[]", BLOCKBYTES)
        self._offset = 0
        self._closed = False
        if _other is not None:  # clone path
            for name in ("_r", "_s", "_k", "_h", "_block"):
                dst, src = getattr(self, name), getattr(_other, name)
                ffi.memmove(dst, src, ffi.sizeof(src))
            self._offset = _other._offset
            return
        with borrowed(key) as k:
            self._set_key(k)

    def _set_key(self, key) -> None:
        t0 = _le32(key, 0)
        t1 = _le32(key, 4)
        t2 = _le32(key, 8)
        t3 = _le32(key, 12)

        # The masks perform the clamping
        r = self._r
        r[0] = t0 & 0x03FFFFFF
        r[1] = ((t0 >> 26) | (t1 << 6)) & 0x03FFFF03
        r[2] = ((t1 >> 20) | (t2 << 12)) & 0x03FFC0FF
        r[3] = ((t2 >> 14) | (t3 << 18)) & 0x03F03FFF
        r[4] = (t3 >> 8) & 0x000FFFFF

        for i in range(4):
            self._s[i] = r[i + 1] * 5

        for i in range(4):
            self._k[i] = _le32(key, BLOCKBYTES + 4 * i)

    def _check_open(self) -> None:
        if self._closed:
            raise InvalidArgument("Poly1305 state has been closed")

    def __deepcopy__(self, memo=None) -> "Poly1305":
        """Return a clone of the current state, key included."""
        return Poly1305(None, _other=self)

    clone = __deepcopy__

    def update(self, data: Buffer, offset: int = 0, length: int | None = None) -> None:
        """Absorb ``data[offset:offset + length]``.

        Args:
            data: Bytes-like object or SecureBuffer to authenticate.
            offset: Start position within data.
            length: Number of bytes to absorb (default: up to the end).

        Raises:
            InvalidArgument: If data is None or the region is out of bounds.
        """
        self._check_open()
        size = buffer_length(data)
        if length is None:
            length = size - offset if isinstance(offset, int) else 0
        check_region(size, offset, length)
        if not length:
            return
        with borrowed(data) as src:
            while length:
                n = min(length, BLOCKBYTES - self._offset)
                ffi.memmove(self._block + self._offset, src + offset, n)
                self._offset += n
                offset += n
                length -= n
                if self._offset == BLOCKBYTES:
                    self._process_block()
                    self._offset = 0

    def update_byte(self, value: int) -> None:
        """Absorb a single byte (0..255)."""
        self._check_open()
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 0xFF:
            raise InvalidArgument("byte value must be in range 0..255")
        self._block[self._offset] = value
        self._offset += 1
        if self._offset == BLOCKBYTES:
            self._process_block()
            self._offset = 0

    def _process_block(self) -> None:
        """Fold the pending block into the accumulator: h = (h + m) * r mod p."""
        blk = self._block
        full = self._offset == BLOCKBYTES
        if not full:
            blk[self._offset] = 1
            for i in range(self._offset + 1, BLOCKBYTES):
                blk[i] = 0

        t0 = _le32(blk, 0)
        t1 = _le32(blk, 4)
        t2 = _le32(blk, 8)
        t3 = _le32(blk, 12)

        h = self._h
        h0 = (h[0] + (t0 & _M26)) & _M32
        h1 = (h[1] + ((((t1 << 32) | t0) >> 26) & _M26)) & _M32
        h2 = (h[2] + ((((t2 << 32) | t1) >> 20) & _M26)) & _M32
        h3 = (h[3] + ((((t3 << 32) | t2) >> 14) & _M26)) & _M32
        h4 = (h[4] + (t3 >> 8)) & _M32
        if full:
            h4 = (h4 + (1 << 24)) & _M32

        r0, r1, r2, r3, r4 = self._r
        s1, s2, s3, s4 = self._s

        tp0 = (h0 * r0 + h1 * s4 + h2 * s3 + h3 * s2 + h4 * s1) & _M64
        tp1 = (h0 * r1 + h1 * r0 + h2 * s4 + h3 * s3 + h4 * s2) & _M64
        tp2 = (h0 * r2 + h1 * r1 + h2 * r0 + h3 * s4 + h4 * s3) & _M64
        tp3 = (h0 * r3 + h1 * r2 + h2 * r1 + h3 * r0 + h4 * s4) & _M64
        tp4 = (h0 * r4 + h1 * r3 + h2 * r2 + h3 * r1 + h4 * r0) & _M64

        h0 = tp0 & _M26
        tp1 = (tp1 + (tp0 >> 26)) & _M64
        h1 = tp1 & _M26
        tp2 = (tp2 + (tp1 >> 26)) & _M64
        h2 = tp2 & _M26
        tp3 = (tp3 + (tp2 >> 26)) & _M64
        h3 = tp3 & _M26
        tp4 = (tp4 + (tp3 >> 26)) & _M64
        h4 = tp4 & _M26
        # 2^130 = 5 (mod p)
        h0 = (h0 + ((tp4 >> 26) & _M32) * 5) & _M32
        h1 = (h1 + (h0 >> 26)) & _M32
        h0 &= _M26

        h[0], h[1], h[2], h[3], h[4] = h0, h1, h2, h3, h4

    def final(self, into: Buffer | None = None, offset: int = 0) -> bytearray | memoryview:
        """Finalize and return the tag, then reset the accumulator.

        The key is kept, see the module warning about key reuse.

        Args:
            into: Optional buffer to write the tag into (default: bytearray created).
            offset: Position in into where the 16 tag bytes are written.

        Returns:
            The tag as bytearray if into not provided, memoryview of into otherwise.

        Raises:
            OutputTooShort: If fewer than 16 bytes fit at offset.
            InvalidArgument: If into is read-only or offset is invalid.
        """
        self._check_open()
        if into is None:
            if offset != 0:
                raise InvalidArgument("offset requires an into buffer")
            out = bytearray(TAGBYTES)
        else:
            out = into
            check_region(buffer_length(out), offset, TAGBYTES, output=True)
        with borrowed(out, writable=True) as dest:
            self._finish(dest, offset)

        self.reset()
        if into is None:
            return out
        if hasattr(into, "cdata"):
            return into.view()[offset : offset + TAGBYTES]
        if is_indexed_secret(into):
            return into
        return memoryview(into).cast("B")[offset : offset + TAGBYTES]

    def _finish(self, dest, offset: int) -> None:
        """Fully reduce h, add k mod 2^128 and store the tag at dest[offset:]."""
        if self._offset > 0:
            self._process_block()

        h = self._h
        h0, h1, h2, h3, h4 = h
        h1 = (h1 + (h0 >> 26)) & _M32
        h0 &= _M26
        h2 = (h2 + (h1 >> 26)) & _M32
        h1 &= _M26
        h3 = (h3 + (h2 >> 26)) & _M32
        h2 &= _M26
        h4 = (h4 + (h3 >> 26)) & _M32
        h3 &= _M26
        h0 = (h0 + (h4 >> 26) * 5) & _M32
        h4 &= _M26
        h1 = (h1 + (h0 >> 26)) & _M32
        h0 &= _M26

        # g = h + 5 - 2^130, i.e. h - p
        g0 = h0 + 5
        b = g0 >> 26
        g0 &= _M26
        g1 = h1 + b
        b = g1 >> 26
        g1 &= _M26
        g2 = h2 + b
        b = g2 >> 26
        g2 &= _M26
        g3 = h3 + b
        b = g3 >> 26
        g3 &= _M26
        g4 = (h4 + b - (1 << 26)) & _M32

        # Select g when h >= p without branching on the accumulator
        b = ((g4 >> 31) - 1) & _M32
        nb = ~b & _M32
        h0 = (h0 & nb) | (g0 & b)
        h1 = (h1 & nb) | (g1 & b)
        h2 = (h2 & nb) | (g2 & b)
        h3 = (h3 & nb) | (g3 & b)
        h4 = (h4 & nb) | (g4 & b)

        k = self._k
        f0 = ((h0 | (h1 << 26)) & _M32) + k[0]
        f1 = (((h1 >> 6) | (h2 << 20)) & _M32) + k[1]
        f2 = (((h2 >> 12) | (h3 << 14)) & _M32) + k[2]
        f3 = (((h3 >> 18) | (h4 << 8)) & _M32) + k[3]

        _store_le32(dest, offset, f0)
        f1 += f0 >> 32
        _store_le32(dest, offset + 4, f1)
        f2 += f1 >> 32
        _store_le32(dest, offset + 8, f2)
        f3 += f2 >> 32
        _store_le32(dest, offset + 12, f3)

    def verify(self, tag: Buffer) -> None:
        """Finalize and compare against ``tag`` in constant time.

        Args:
            tag: The expected 16-byte tag.

        Returns:
            Only if verification succeeds.

        Raises:
            InvalidArgument: If tag length is invalid.
            ValueError: If verification fails.
        """
        self._check_open()
        if buffer_length(tag) != TAGBYTES:
            raise InvalidArgument(f"tag length must be {TAGBYTES}")
        with borrowed(tag) as t:
            expected = ffi.buffer(t, TAGBYTES)[:]
        if not hmac.compare_digest(self.final(), expected):
            raise ValueError("mac verification failed")

    def reset(self) -> None:
        """Discard buffered input and the accumulator; the key is kept."""
        if self._closed:
            return
        self._offset = 0
        secure_zero(self._h)
        secure_zero(self._block)

    def close(self) -> None:
        """Wipe the key schedule and all accumulating state. Safe to call twice."""
        if self._closed:
            return
        self._offset = 0
        for arr in (self._r, self._s, self._k, self._h, self._block):
            secure_zero(arr)
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "Poly1305":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            self.close()

    def __repr__(self) -> str:
        return f"<Poly1305 {'closed' if self._closed else 'ready'}>"


__all__ = [
    # constants
    "KEYBYTES",
    "TAGBYTES",
    "BLOCKBYTES",
    # one-shot functions
    "mac",
    "verify",
    # incremental class
    "Poly1305",
]
