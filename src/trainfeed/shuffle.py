"""
trainfeed shuffle: deterministic per-epoch file order.

Every epoch draws a new permutation of the file list from a SplitMix64
generator seeded with a counter.  The counter, not wall-clock entropy,
is the seed, so the whole sequence of epoch orders is reproducible from
its starting value while still changing from one epoch to the next.

References
----------
- Steele, Lea & Flood (2014). *Fast splittable pseudorandom number generators.*
"""

from __future__ import annotations

from typing import Dict, List, Sequence, TypeVar

# 64-bit mask used throughout to simulate unsigned 64-bit arithmetic.
_U64 = 0xFFFF_FFFF_FFFF_FFFF

T = TypeVar("T")


# ---------------------------------------------------------------------------
# SplitMix64
# ---------------------------------------------------------------------------

class SplitMix64:
    """SplitMix64: fast 64-bit PRNG.

    Parameters
    ----------
    seed : int
        Initial 64-bit state.
    """

    __slots__ = ("state",)

    def __init__(self, seed: int) -> None:
        self.state: int = seed & _U64

    def next(self) -> int:
        """Advance state and return a 64-bit pseudo-random value."""
        self.state = (self.state + 0x9E37_79B9_7F4A_7C15) & _U64
        z = self.state
        z = ((z ^ (z >> 30)) * 0xBF58_476D_1CE4_E5B9) & _U64
        z = ((z ^ (z >> 27)) * 0x94D0_49BB_1331_11EB) & _U64
        return (z ^ (z >> 31)) & _U64

    def below(self, bound: int) -> int:
        """Uniform integer in ``[0, bound)`` (rejection sampling, no modulo bias)."""
        if bound <= 0:
            raise ValueError("bound must be positive")
        # Largest multiple of bound that fits in 64 bits.
        limit = (_U64 + 1) - ((_U64 + 1) % bound)
        while True:
            value = self.next()
            if value < limit:
                return value % bound


# ---------------------------------------------------------------------------
# Epoch shuffler
# ---------------------------------------------------------------------------

class EpochShuffler:
    """Counter-seeded Fisher-Yates shuffle, one permutation per call.

    Parameters
    ----------
    seed : int
        First counter value (default 1).  Call *k* (0-based) is seeded
        with ``seed + k``.

    Examples
    --------
    >>> shuffler = EpochShuffler()
    >>> first = shuffler.shuffle(files)    # seeded with 1
    >>> second = shuffler.shuffle(files)   # seeded with 2
    """

    __slots__ = ("_counter",)

    def __init__(self, seed: int = 1) -> None:
        self._counter = seed

    @property
    def counter(self) -> int:
        """Seed the next call to :meth:`shuffle` will use."""
        return self._counter

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Return a new permutation of *items* and advance the counter."""
        rng = SplitMix64(self._counter)
        self._counter += 1
        out = list(items)
        for i in range(len(out) - 1, 0, -1):
            j = rng.below(i + 1)
            out[i], out[j] = out[j], out[i]
        return out

    # -- checkpointing ------------------------------------------------------

    def get_state(self) -> Dict[str, int]:
        return {"counter": self._counter}

    @classmethod
    def from_state(cls, state: Dict[str, int]) -> EpochShuffler:
        return cls(seed=state["counter"])
