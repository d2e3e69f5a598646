"""
Alea PRNG used as the single seeded random source of the geology core.

Based on Johannes Baagøe's Alea algorithm. It is pure Python and
platform independent, so the same seed reproduces the same plate
assignment and the same event logs on every machine.
"""

from typing import Sequence, TypeVar, Union

T = TypeVar("T")

Seed = Union[str, int, float, Sequence]


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG:
    """
    Seeded Alea generator.

    Every simulator owns its own instance; nothing in the package keeps a
    module-level generator.
    """

    def __init__(self, seed: Seed):
        """Initialize with seed string or number (or a sequence of them)."""
        self.call_count = 0
        self.seed = seed

        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            args = list(seed)
        else:
            args = [seed]

        mash_n = 0xEFC8249D  # 4022871197

        def mash(data):
            nonlocal mash_n
            data = str(data)
            for char in data:
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for arg in args:
            self.s0 -= mash(arg)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(arg)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(arg)
            if self.s2 < 0:
                self.s2 += 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def uniform(self, low: float, high: float) -> float:
        """Random float in [low, high)."""
        return low + (high - low) * self.random()

    def randint(self, low: int, high: int) -> int:
        """Random integer in [low, high] inclusive."""
        return int(self.random() * (high - low + 1)) + int(low)

    def chance(self, probability: float) -> bool:
        """
        Bernoulli trial.

        Probabilities at or below 0 never fire and never consume a draw;
        probabilities at or above 1 always fire.
        """
        if probability <= 0:
            return False
        if probability >= 1:
            return True
        return self.random() < probability

    def choice(self, seq: Sequence[T]) -> T:
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def derive(self, label: str) -> "AleaPRNG":
        """Create an independent generator for a named sub-stream."""
        return AleaPRNG(f"{self.seed}:{label}")
