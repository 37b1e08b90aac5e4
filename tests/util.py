import json
import random
from pathlib import Path


def random_split_bytes(data, rng=random):
    """Yield consecutive chunks of data with random sizes, empty chunks included."""
    pos = 0
    while pos < len(data):
        size = rng.randint(0, 40)
        yield data[pos : pos + size]
        pos += size


def chunked(data, size):
    """Yield consecutive chunks of exactly size bytes (the last may be shorter)."""
    for pos in range(0, len(data), size):
        yield data[pos : pos + size]


def load_test_vectors():
    """Load Poly1305 test vectors from JSON file."""
    path = Path(__file__).parent / "test-vectors" / "poly1305-test-vectors.json"
    with open(path, "r") as f:
        return json.load(f)


def get_test_id(vector):
    """Generate a test ID from the vector name, e.g. "A.3 #5 wraparound"."""
    return vector["name"].removeprefix("RFC8439 ")


def reference_tag(key, data):
    """Straightforward big-integer Poly1305, for cross-checking only."""
    p = 2**130 - 5
    r = int.from_bytes(key[:16], "little") & 0x0FFFFFFC0FFFFFFC0FFFFFFC0FFFFFFF
    s = int.from_bytes(key[16:], "little")
    acc = 0
    for i in range(0, len(data), 16):
        chunk = data[i : i + 16]
        acc = (r * (acc + int.from_bytes(chunk, "little") + 256 ** len(chunk))) % p
    return ((acc + s) & (2**128 - 1)).to_bytes(16, "little")
