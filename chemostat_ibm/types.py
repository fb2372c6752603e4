"""Core data types for chemostat-ibm.

Types shared across modules:
  - AGE_DTYPE: NumPy dtype of the per-individual age vector (from population)
  - ChemostatState: the value threaded through the transition engine

State values are never mutated: each engine step builds a new one.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from chemostat_ibm.population import AGE_DTYPE, Population, ResourcePool

__all__ = ["AGE_DTYPE", "ChemostatState", "initial_state"]


@dataclass(frozen=True)
class ChemostatState:
    """(Population, Resource Pool, time) snapshot.

    ``deaths`` and ``divisions`` record what happened in the step that
    produced this state (both 0 for an initial state).
    """
    population: Population
    pool: ResourcePool
    time: float = 0.0
    deaths: int = 0
    divisions: int = 0

    @property
    def N(self) -> int:
        return len(self.population)

    @property
    def S(self) -> float:
        return self.pool.get()

    @property
    def ages(self) -> np.ndarray:
        return self.population.ages


def initial_state(N_0: int, S_init: float, t0: float = 0.0) -> ChemostatState:
    """State at the start of a run: N_0 newborn individuals, pool at S_init."""
    return ChemostatState(
        population=Population.founders(int(N_0)),
        pool=ResourcePool(float(S_init)),
        time=float(t0),
    )
