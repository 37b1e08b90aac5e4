"""Dynamic loader for the C runtime using CFFI (ABI mode).

Only a handful of libc symbols are needed: ``memset`` for wiping secret
buffers and ``mlock``/``munlock`` for best-effort page locking.

Environment variables:
- POLY1305_LIBC_PATH: full path to the C runtime shared library to load
- POLY1305_NO_MLOCK: disable page locking of secure buffers by default
"""

from __future__ import annotations

import ctypes.util
import logging
import os
from typing import Any, Iterable

from cffi import FFI

__all__ = ["ffi", "libc", "HAVE_MLOCK", "MLOCK_DEFAULT"]

logger = logging.getLogger(__name__)

ffi = FFI()
ffi.cdef(
    r"""
    void *memset(void *s, int c, size_t n);
    int mlock(const void *addr, size_t len);
    int munlock(const void *addr, size_t len);
    """
)


def _candidate_paths() -> Iterable[str | None]:
    # 1) Explicit override
    p = os.environ.get("POLY1305_LIBC_PATH")
    if p:
        yield p

    # 2) Whatever ctypes resolves as the C runtime
    name = ctypes.util.find_library("c")
    if name:
        yield name

    # 3) Process globals (works on most POSIX platforms)
    if os.name != "nt":
        yield None
    else:
        yield "msvcrt"


def _load_libc():
    last_err: Exception | None = None
    for cand in _candidate_paths():
        try:
            lib = ffi.dlopen(cand)
        except OSError as e:  # try next candidate
            last_err = e
            continue
        logger.debug("Loaded C runtime from %s", cand or "process globals")
        return lib
    hint = "Set POLY1305_LIBC_PATH to the full path of the C runtime library."
    raise OSError(f"Could not load the C runtime: {last_err}\n{hint}")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


libc: Any = _load_libc()

# ABI mode resolves symbols lazily; Windows runtimes have no mlock
try:
    libc.mlock
    libc.munlock
except AttributeError:
    HAVE_MLOCK = False
else:
    HAVE_MLOCK = True


def _mlock_default() -> bool:
    return HAVE_MLOCK and not _env_flag("POLY1305_NO_MLOCK")


MLOCK_DEFAULT = _mlock_default()
