"""Individual registry and resource pool.

Handles: membership of the living population (count, random subsets,
removal, appending offspring, aging) and the scalar resource pool.

Individuals carry a single attribute, age, and have no identity beyond
membership: the registry is a 1-D age vector. Every operation returns a
new object; nothing here mutates in place, so states can be shared
freely between steps and replicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


AGE_DTYPE = np.float64


class Population:
    """Unordered collection of individuals, stored as their ages."""

    __slots__ = ("_ages",)

    def __init__(self, ages: Optional[np.ndarray] = None):
        if ages is None:
            ages = np.empty(0, dtype=AGE_DTYPE)
        ages = np.array(ages, dtype=AGE_DTYPE).reshape(-1)
        ages.setflags(write=False)
        self._ages = ages

    @classmethod
    def founders(cls, n: int, age: float = 0.0) -> 'Population':
        """n individuals of the same age."""
        return cls(np.full(max(int(n), 0), age, dtype=AGE_DTYPE))

    @property
    def ages(self) -> np.ndarray:
        """Read-only view of the age vector."""
        return self._ages

    @property
    def size(self) -> int:
        return int(self._ages.shape[0])

    def __len__(self) -> int:
        return self.size

    def __eq__(self, other) -> bool:
        if not isinstance(other, Population):
            return NotImplemented
        return np.array_equal(self._ages, other._ages)

    def __repr__(self) -> str:
        return f"Population(N={self.size}, max_age={self.max_age():g})"

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Indices of a uniformly random subset of size n, without replacement.

        n is clamped to [0, N]: it is not possible to select more
        individuals than exist.
        """
        n = min(max(int(n), 0), self.size)
        if n == 0:
            return np.empty(0, dtype=np.intp)
        return rng.choice(self.size, size=n, replace=False)

    def remove(self, indices: np.ndarray) -> 'Population':
        """Population without the members at the given indices."""
        if len(indices) == 0:
            return self
        keep = np.ones(self.size, dtype=bool)
        keep[indices] = False
        return Population(self._ages[keep])

    def append(self, n: int, age: float = 0.0) -> 'Population':
        """Population with n new members of the given age."""
        if n <= 0:
            return self
        return Population(
            np.concatenate([self._ages, np.full(int(n), age, dtype=AGE_DTYPE)])
        )

    def aged(self, dt: float) -> 'Population':
        """Population with every member's age advanced by dt."""
        return Population(self._ages + dt)

    def max_age(self) -> float:
        """Oldest age present; 0.0 for an empty population."""
        if self.size == 0:
            return 0.0
        return float(self._ages.max())

    def mean_age(self) -> float:
        """Mean age; 0.0 for an empty population."""
        if self.size == 0:
            return 0.0
        return float(self._ages.mean())


@dataclass(frozen=True)
class ResourcePool:
    """Single non-negative resource concentration S.

    Values below zero are clamped on construction, so S >= 0 holds for
    every pool that exists.
    """
    value: float = 0.0

    def __post_init__(self):
        if not self.value >= 0.0:
            object.__setattr__(self, "value", 0.0)

    def get(self) -> float:
        return self.value

    def set(self, value: float) -> 'ResourcePool':
        """New pool holding value (clamped at zero)."""
        return ResourcePool(float(value))
