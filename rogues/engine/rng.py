from typing import List, Sequence, TypeVar
import numpy as np

T = TypeVar("T")

class DRNG:
    """Deterministic Random Number Generator wrapper."""

    def __init__(self, seed: int):
        self.g = np.random.Generator(np.random.PCG64(seed))

    def bernoulli(self, p: float) -> bool:
        """Return True with probability p."""
        return bool(self.g.random() < p)

    def choice(self, items: Sequence[T]) -> T:
        """Return one element of a non-empty sequence."""
        return items[int(self.g.integers(len(items)))]

    def shuffled(self, items: Sequence[T]) -> List[T]:
        """Return a shuffled copy of items."""
        order = self.g.permutation(len(items))
        return [items[int(i)] for i in order]

    def sample(self, items: Sequence[T], k: int) -> List[T]:
        """Return up to k distinct elements in random order."""
        return self.shuffled(items)[:k]
