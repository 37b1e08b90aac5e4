"""Streaming behavior: chunking, reset, reuse, clone and cross-checks."""

import copy
import random

import pytest

from pypoly1305 import Poly1305, mac

from .util import chunked, random_split_bytes, reference_tag

KEY = bytes.fromhex(
    "85d6be7857556d337f4452fe42d506a80103808afb0db2fd4abff6af4149f51b"
)


@pytest.mark.parametrize("length", [0, 1, 15, 16, 17, 31, 32, 33, 64, 255, 1000])
def test_against_reference(length):
    rng = random.Random(length)
    key = rng.randbytes(32)
    data = rng.randbytes(length)
    assert mac(key, data) == reference_tag(key, data)


def test_random_keys_and_messages():
    rng = random.Random(1305)
    for _ in range(200):
        key = rng.randbytes(32)
        data = rng.randbytes(rng.randint(0, 300))
        assert mac(key, data) == reference_tag(key, data)


def test_extreme_limbs():
    """All-ones key and message drive every limb to its maximum."""
    key = b"\xff" * 32
    for length in (16, 17, 160, 1024):
        data = b"\xff" * length
        assert mac(key, data) == reference_tag(key, data)


def test_empty_message():
    # Nothing absorbed: the tag is s itself
    key = bytes(16) + bytes(range(16))
    assert mac(key, b"") == bytes(range(16))


def test_deterministic():
    data = b"The quick brown fox jumps over the lazy dog"
    assert mac(KEY, data) == mac(KEY, data)


@pytest.mark.parametrize("seed", range(10))
def test_chunk_independence(seed):
    rng = random.Random(seed)
    data = rng.randbytes(rng.randint(0, 500))
    expected = mac(KEY, data)
    for split in (chunked(data, 1), chunked(data, 3), random_split_bytes(data, rng)):
        state = Poly1305(KEY)
        for chunk in split:
            state.update(chunk)
        assert state.final() == expected


def test_mixed_update_kinds():
    data = bytes(range(50))
    state = Poly1305(KEY)
    state.update(bytearray(data[:10]))
    state.update_byte(data[10])
    state.update(memoryview(data)[11:40])
    state.update(data, 40)
    assert state.final() == mac(KEY, data)


def test_update_with_wide_memoryview():
    data = bytes(range(64))
    words = memoryview(bytearray(data)).cast("I")
    state = Poly1305(KEY)
    state.update(words)
    assert state.final() == mac(KEY, data)


def test_zero_length_update_is_noop():
    state = Poly1305(KEY)
    state.update(b"")
    state.update(b"abc", 3)
    state.update(b"abc", 1, 0)
    assert state.final() == mac(KEY, b"")


def test_final_resets_for_next_message():
    """Finalize then feed a new message equals a fresh instance."""
    first, second = b"first message", b"second message, a bit longer than a block"
    state = Poly1305(KEY)
    state.update(first)
    assert state.final() == mac(KEY, first)
    state.update(second)
    assert state.final() == mac(KEY, second)


def test_repeated_final_without_data():
    state = Poly1305(KEY)
    empty = mac(KEY, b"")
    assert state.final() == empty
    assert state.final() == empty


def test_reset_discards_pending_input():
    state = Poly1305(KEY)
    state.update(b"x" * 37)
    state.reset()
    state.update(b"hello")
    assert state.final() == mac(KEY, b"hello")


def test_clone():
    state = Poly1305(KEY)
    state.update(b"common prefix, ")
    other = state.clone()
    state.update(b"branch one")
    other.update(b"branch two")
    assert state.final() == mac(KEY, b"common prefix, branch one")
    assert other.final() == mac(KEY, b"common prefix, branch two")


def test_deepcopy():
    state = Poly1305(KEY)
    state.update(b"abc")
    dup = copy.deepcopy(state)
    dup.update(b"def")
    state.update(b"def")
    assert dup.final() == state.final()


def test_final_into_offset():
    out = bytearray(40)
    state = Poly1305(KEY)
    state.update(b"data")
    view = state.final(out, 24)
    assert len(view) == 16
    assert bytes(view) == mac(KEY, b"data")
    assert out[:24] == bytes(24)


def test_attributes():
    state = Poly1305(KEY)
    assert state.digest_size == 16
    assert state.block_size == 16
    assert "ready" in repr(state)
    state.close()
    assert "closed" in repr(state)
