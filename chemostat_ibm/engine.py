"""Transition engine: one discrete-time step of the chemostat population.

Per-step order (the order defines the discrete approximation):
  1. Washout:   each individual leaves with probability p = D·dt
  2. Division:  Monod rate r(S) = r_max·S / (k_s + S); survivors divide
                with probability r·dt into two age-0 offspring
  3. Aging:     survivors that did not divide get age += dt
  4. Resource:  S ← S + dt·D·(S_0 − S) − divisions / (Y·V)
  5. Clamp:     S ← max(S, 0)
  6. Time:      t ← t + dt

Counts are drawn either as stochastically rounded expected values
('expected': floor(n·p), plus one with probability equal to the fractional
part, so the mean count is exactly n·p) or as binomial draws
('binomial', equivalent to one Bernoulli trial per individual). Which
individuals are hit is always a uniform random subset.

With X = N/V and divisions ≈ r·N·dt, step 4 tends to the continuous
balance dS/dt = D·(S_0 − S) − r·X/Y as dt → 0 (see ode.py).
"""

from __future__ import annotations

import logging
import math

import numpy as np

from chemostat_ibm.config import ChemostatParams
from chemostat_ibm.types import ChemostatState

logger = logging.getLogger(__name__)


def monod_rate(S: float, r_max: float, k_s: float) -> float:
    """Specific growth rate r = r_max·S / (k_s + S); 0 when k_s + S == 0."""
    denom = k_s + S
    if denom <= 0.0:
        return 0.0
    return r_max * S / denom


def clamp_probability(p: float) -> float:
    """Clamp a per-step probability to [0, 1]."""
    return min(max(p, 0.0), 1.0)


def expected_count(n: int, p: float, rng: np.random.Generator) -> int:
    """n·p rounded up or down at random, with E[count] == n·p.

    A fractional part is resolved by one uniform draw, so small populations
    can still lose or gain single individuals. Integral n·p uses no draw.
    """
    x = n * p
    count = math.floor(x)
    frac = x - count
    if frac > 0.0 and rng.random() < frac:
        count += 1
    return int(count)


def draw_count(
    n: int,
    p: float,
    sampling: str,
    rng: np.random.Generator,
) -> int:
    """Number of individuals (out of n) hit by an event of probability p."""
    if n <= 0 or p <= 0.0:
        return 0
    if sampling == "binomial":
        return int(rng.binomial(n, p))
    return min(expected_count(n, p, rng), n)


def step(
    state: ChemostatState,
    params: ChemostatParams,
    dt: float,
    rng: np.random.Generator,
) -> ChemostatState:
    """Advance (Population, S, t) by one step of size dt.

    Pure apart from consuming draws from ``rng``: the input state is left
    untouched and a new ChemostatState is returned.

    Args:
        state: Current state.
        params: Chemostat parameters (params.DELTAT is not used here; the
            step size is always ``dt``).
        dt: Step size.
        rng: Random generator owned by the calling run.

    Returns:
        The state at time ``state.time + dt``.
    """
    population = state.population
    S = state.S

    # 1. Washout
    p_death = clamp_probability(params.D * dt)
    n_deaths = draw_count(len(population), p_death, params.sampling, rng)
    population = population.remove(population.sample(n_deaths, rng))

    # 2. Division
    r = monod_rate(S, params.r_max, params.k_s)
    p_div = clamp_probability(r * dt)
    n_div = draw_count(len(population), p_div, params.sampling, rng)
    dividers = population.sample(n_div, rng)

    # 3. Aging (parents are discarded, offspring start at 0)
    population = population.remove(dividers).aged(dt).append(2 * n_div, age=0.0)

    # 4–5. Resource balance, clamped by the pool
    S_new = S + dt * params.D * (params.S_0 - S) - n_div / (params.Y * params.volume)
    pool = state.pool.set(S_new)

    logger.debug(
        "t=%.4g N=%d deaths=%d divisions=%d r=%.4g S=%.4g",
        state.time + dt, len(population), n_deaths, n_div, r, pool.get(),
    )

    return ChemostatState(
        population=population,
        pool=pool,
        time=state.time + dt,
        deaths=n_deaths,
        divisions=n_div,
    )
