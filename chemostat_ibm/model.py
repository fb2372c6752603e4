"""Driver loop: iterate a step function over a time grid and record output.

  - integrate(): generic fixed-step driver for any
                 ``step_fn(state, params, dt, rng) -> state``
  - iterate():   lazy record stream for the chemostat engine
  - run():       validated, eager version of iterate()
  - simulate():  build state, grid and RNG from a SimulationConfig

Each run owns its state and its generator, so independent runs never share
mutable data. Steps within a run are strictly sequential. The record
sequence is lazy and finite; restarting means re-running from the initial
state with the same seed.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from chemostat_ibm.config import (
    ChemostatParams,
    SimulationConfig,
    default_config,
    validate_initial,
    validate_params,
)
from chemostat_ibm.engine import step
from chemostat_ibm.observers import (
    Observer,
    default_observer,
    get_observer,
    records_to_frame,
)
from chemostat_ibm.rng import SeedLike, make_rng
from chemostat_ibm.types import ChemostatState, initial_state

logger = logging.getLogger(__name__)

StepFunction = Callable[
    [ChemostatState, ChemostatParams, float, np.random.Generator],
    ChemostatState,
]


# ═══════════════════════════════════════════════════════════════════════
# TIME GRID
# ═══════════════════════════════════════════════════════════════════════

def make_times(n_steps: int, dt: float, t0: float = 0.0) -> np.ndarray:
    """t0, t0+dt, …, t0+n_steps·dt (n_steps + 1 points)."""
    if n_steps < 0:
        raise ValueError(f"n_steps must be non-negative, got {n_steps}")
    return t0 + dt * np.arange(n_steps + 1, dtype=np.float64)


def _check_times(times: Sequence[float]) -> np.ndarray:
    times = np.asarray(times, dtype=np.float64).reshape(-1)
    if times.size == 0:
        raise ValueError("times must contain at least one time point")
    if times.size > 1 and np.any(np.diff(times) <= 0):
        raise ValueError("times must be strictly increasing")
    return times


# ═══════════════════════════════════════════════════════════════════════
# GENERIC FIXED-STEP DRIVER
# ═══════════════════════════════════════════════════════════════════════

def integrate(
    step_fn: StepFunction,
    state: ChemostatState,
    params: ChemostatParams,
    times: Sequence[float],
    rng: np.random.Generator,
    observer: Optional[Observer] = None,
) -> Iterator[Any]:
    """Yield one record per time point, starting with the initial state.

    The initial state is re-stamped with ``times[0]``; step i uses
    dt = times[i+1] − times[i]. Without an observer the records are the
    states themselves.
    """
    times = _check_times(times)
    record = observer if observer is not None else (lambda s, t: s)

    state = dataclasses.replace(state, time=float(times[0]))
    yield record(state, state.time)

    for t_prev, t_next in zip(times[:-1], times[1:]):
        state = step_fn(state, params, float(t_next - t_prev), rng)
        # keep recorded times on the grid, free of accumulated round-off
        state = dataclasses.replace(state, time=float(t_next))
        yield record(state, state.time)


# ═══════════════════════════════════════════════════════════════════════
# CHEMOSTAT RUNS
# ═══════════════════════════════════════════════════════════════════════

def _resolve_rng(
    seed: Optional[SeedLike],
    rng: Optional[np.random.Generator],
) -> np.random.Generator:
    if rng is not None and seed is not None:
        raise ValueError("pass either seed or rng, not both")
    return rng if rng is not None else make_rng(seed)


def iterate(
    initial: ChemostatState,
    params: ChemostatParams,
    times: Optional[Sequence[float]] = None,
    observer: Optional[Observer] = None,
    seed: Optional[SeedLike] = None,
    rng: Optional[np.random.Generator] = None,
    n_steps: int = 100,
) -> Iterator[Any]:
    """Lazy record stream for the chemostat transition engine.

    Parameters and the time grid are checked when iterate() is called, so
    invalid input fails before the stream is consumed.

    Args:
        initial: Initial state.
        params: Chemostat parameters.
        times: Time grid. Defaults to n_steps steps of params.DELTAT
            from initial.time.
        observer: ``(state, time) -> record``; None records full states.
        seed: Seed for a private generator. Mutually exclusive with rng.
        rng: Generator to draw from.
        n_steps: Steps to take when times is None.

    Raises:
        ParameterError: Invalid parameter.
        ValueError: Invalid time grid, or both seed and rng given.
    """
    validate_params(params)
    if times is None:
        times = make_times(n_steps, params.DELTAT, initial.time)
    times = _check_times(times)
    return integrate(step, initial, params, times, _resolve_rng(seed, rng), observer)


def run(
    initial: ChemostatState,
    params: ChemostatParams,
    times: Optional[Sequence[float]] = None,
    observer: Optional[Observer] = None,
    seed: Optional[SeedLike] = None,
    rng: Optional[np.random.Generator] = None,
    n_steps: int = 100,
) -> List[Any]:
    """Run to completion and return the list of records.

    Raises:
        ParameterError: Invalid parameter.
        ValueError: Invalid time grid, or both seed and rng given.
    """
    records = list(iterate(
        initial, params, times=times, observer=observer,
        seed=seed, rng=rng, n_steps=n_steps,
    ))
    logger.debug("run finished: %d records", len(records))
    return records


# ═══════════════════════════════════════════════════════════════════════
# CONFIG-DRIVEN SIMULATION
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationResult:
    """Records of one run, plus the settings that produced them."""
    records: List[Any] = field(default_factory=list)
    params: ChemostatParams = field(default_factory=ChemostatParams)
    seed: Optional[int] = None

    # Summary
    initial_N: int = 0
    final_N: int = 0
    final_S: float = 0.0
    extinct: bool = False
    extinction_time: Optional[float] = None

    def to_dataframe(self) -> pd.DataFrame:
        return records_to_frame(self.records)


def simulate(
    config: Optional[SimulationConfig] = None,
    observer: Optional[Observer] = None,
    seed: Optional[SeedLike] = None,
) -> SimulationResult:
    """Run one simulation described by a config.

    The observer defaults to the one named in ``config.output.observer``;
    the seed defaults to ``config.simulation.seed``.
    """
    if config is None:
        config = default_config()
    params = config.chemostat
    validate_params(params)
    validate_initial(config.initial)
    if observer is None:
        observer = get_observer(config.output.observer)
    if seed is None:
        seed = config.simulation.seed

    start = initial_state(
        config.initial.N_0, config.initial.S_init, config.simulation.t0,
    )
    times = make_times(config.simulation.n_steps, params.DELTAT, config.simulation.t0)

    logger.info(
        "simulating %d steps (DELTAT=%g, D=%g, r_max=%g, N_0=%d)",
        config.simulation.n_steps, params.DELTAT, params.D, params.r_max,
        config.initial.N_0,
    )

    # Track extinction from the states themselves so any observer works.
    records: List[Any] = []
    extinction_time = None
    last = start

    def tracking_observer(state: ChemostatState, time: float) -> Any:
        nonlocal extinction_time, last
        if extinction_time is None and state.N == 0 and last.N > 0:
            extinction_time = time
        last = state
        return observer(state, time)

    records.extend(integrate(step, start, params, times, make_rng(seed), tracking_observer))

    if extinction_time is not None:
        logger.warning("population went extinct at t=%g", extinction_time)

    return SimulationResult(
        records=records,
        params=params,
        seed=seed if isinstance(seed, (int, np.integer)) else None,
        initial_N=start.N,
        final_N=last.N,
        final_S=last.S,
        extinct=last.N == 0,
        extinction_time=extinction_time,
    )


__all__ = [
    "SimulationResult",
    "default_observer",
    "initial_state",
    "integrate",
    "iterate",
    "make_times",
    "run",
    "simulate",
    "step",
]
