"""Reseedable pseudo-random generator shared by tree induction and ensemble growth.

Models store only the integer seed. Every training call builds a fresh
`SeededRandom` from that seed, so retraining on the same rows replays the same
sequence of feature, cutoff and sample draws.
"""

from __future__ import annotations

from typing import Final

import numpy as np

# Park-Miller minimal standard generator.
_MULTIPLIER: Final[int] = 16807
_MODULUS: Final[int] = 0x7FFFFFFF
_SCALE: Final[float] = float(0x80000000)


def normalize_seed(seed: int) -> int:
    """Map an arbitrary integer onto the generator's valid state range `[1, 2**31 - 2]`.

    Args:
        seed (int): Any integer.

    Returns:
        int: A seed that will not collapse the generator to zero.

    Examples:
        >>> normalize_seed(0)
        1
        >>> normalize_seed(0x7FFFFFFF + 5)
        5
    """
    state = int(seed) % _MODULUS
    return state if state else 1


def generate_seed() -> int:
    """Draw a fresh seed from numpy's default entropy source."""
    return int(np.random.default_rng().integers(1, _MODULUS))


class SeededRandom:
    """Linear-congruential generator producing floats in `[0, 1)`.

    Attributes:
        state (int): Current generator state; advancing it is the only side effect.

    Examples:
        >>> rng = SeededRandom(1)
        >>> rng.state
        1
        >>> round(rng.random(), 10)
        7.8264e-06
        >>> rng.state
        16807
    """

    def __init__(self, seed: int) -> None:
        """Initialize the generator.

        Args:
            seed (int): Starting seed; normalized with `normalize_seed`.
        """
        self.state = normalize_seed(seed)

    def reseed(self, seed: int) -> None:
        """Restart the sequence from `seed`."""
        self.state = normalize_seed(seed)

    def random(self) -> float:
        """Return the next float in `[0, 1)`."""
        self.state = (self.state * _MULTIPLIER) % _MODULUS
        return self.state / _SCALE

    def randint(self, high: int) -> int:
        """Return the next integer in `[0, high)`.

        Args:
            high (int): Exclusive upper bound; must be positive.

        Returns:
            int: The drawn integer.
        """
        return int(self.random() * high)

    def shuffle[T](self, items: list[T]) -> list[T]:
        """Shuffle `items` in place (Fisher-Yates, walking from the end) and return it.

        Args:
            items (list[T]): The list to permute.

        Returns:
            list[T]: The same list object, permuted.
        """
        for i in range(len(items) - 1, -1, -1):
            j = self.randint(i + 1)
            items[i], items[j] = items[j], items[i]
        return items

    def sample_indices(self, population: int, size: int) -> list[int]:
        """Draw `size` distinct indices from `range(population)` without replacement.

        The indices are the tail of a shuffled index list, so the draw order is
        fully determined by the generator state.

        Args:
            population (int): Number of candidates.
            size (int): Number of indices to keep; clipped to `[0, population]`.

        Returns:
            list[int]: The sampled indices.
        """
        size = max(0, min(size, population))
        if size == 0:
            return []
        return self.shuffle(list(range(population)))[-size:]
