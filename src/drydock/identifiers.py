"""
Random identifiers for container names, database names and passwords.

A single generator is seeded once per process from the operating system's
entropy source. Tests can pass their own seeded generator for repeatable
sequences.
"""

import random
import string
import threading
from typing import Optional

_ALPHABET = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in base 36 (0-9a-z)."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits))


class IdentifierGenerator:
    """Produces short base-36 tokens from random 63-bit values."""

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        if rng is not None:
            self._rng = rng
        elif seed is not None:
            self._rng = random.Random(seed)
        else:
            self._rng = random.Random(random.SystemRandom().getrandbits(128))
        self._lock = threading.Lock()

    def generate(self) -> str:
        """Return a new random token."""
        with self._lock:
            value = self._rng.getrandbits(63)
        return to_base36(value)


_default_generator = IdentifierGenerator()


def default_generator() -> IdentifierGenerator:
    """The process-wide generator."""
    return _default_generator


def random_string() -> str:
    """Generate a token from the process-wide generator."""
    return _default_generator.generate()
