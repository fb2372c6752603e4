"""Seeded RNG factory for reproducible simulations.

Uses NumPy's SeedSequence → PCG64 hierarchy to guarantee:
  - Statistical independence between replicate streams
  - Bit-exact replay with the same master seed
  - Changing the number of replicates doesn't affect other replicates' streams

Seeds are always part of run configuration; nothing here touches the
global NumPy random state.
"""

from __future__ import annotations

from typing import List, Optional, Union

import numpy as np

SeedLike = Union[int, np.random.SeedSequence]


def make_rng(seed: Optional[SeedLike] = None) -> np.random.Generator:
    """PCG64 generator from an int seed or a SeedSequence.

    ``None`` draws fresh OS entropy (non-reproducible).
    """
    if isinstance(seed, (int, np.integer)) and seed < 0:
        raise ValueError(f"seed must be non-negative, got {seed}")
    return np.random.Generator(np.random.PCG64(seed))


def replicate_seeds(
    master_seed: int,
    n_replicates: int,
) -> List[np.random.SeedSequence]:
    """Independent child seed sequences, one per replicate.

    Child i depends only on (master_seed, i), so replicate 0 of a 5-replicate
    ensemble replays replicate 0 of a 50-replicate ensemble exactly.

    SeedSequences pickle cleanly, so they can be shipped to pool workers.
    """
    if n_replicates < 0:
        raise ValueError(f"n_replicates must be non-negative, got {n_replicates}")
    return np.random.SeedSequence(master_seed).spawn(n_replicates)


def spawn_replicate_rngs(
    master_seed: int,
    n_replicates: int,
) -> List[np.random.Generator]:
    """Independent generators for n replicates.

    Example:
        >>> rngs = spawn_replicate_rngs(42, 10)
        >>> rngs[3].random()  # reproducible
    """
    return [make_rng(ss) for ss in replicate_seeds(master_seed, n_replicates)]
