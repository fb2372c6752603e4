"""Observers: per-step projections of the simulation state.

An observer is a plain function ``(state, time) -> record`` called once
per recorded time point. It sees only the state and the time, nothing of
the driver. The column names of the built-in records are part of the
output contract used by downstream tables:

  default_observer  → {time, N, S, maxage}
  age_observer      → {time, N, S, age}      (age: per-individual array)
  full_state_observer → the ChemostatState itself
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Union

import pandas as pd

from chemostat_ibm.types import ChemostatState

Observer = Callable[[ChemostatState, float], Any]

DEFAULT_COLUMNS = ["time", "N", "S", "maxage"]


def default_observer(state: ChemostatState, time: float) -> Dict[str, Any]:
    return {
        "time": float(time),
        "N": state.N,
        "S": state.S,
        "maxage": state.population.max_age(),
    }


def age_observer(state: ChemostatState, time: float) -> Dict[str, Any]:
    return {
        "time": float(time),
        "N": state.N,
        "S": state.S,
        "age": state.ages.copy(),
    }


def full_state_observer(state: ChemostatState, time: float) -> ChemostatState:
    return state


OBSERVERS: Dict[str, Observer] = {
    "default": default_observer,
    "age": age_observer,
    "full": full_state_observer,
}


def get_observer(name: str) -> Observer:
    """Look up a built-in observer by its config name."""
    try:
        return OBSERVERS[name]
    except KeyError:
        raise KeyError(
            f"Unknown observer '{name}'. Available: {sorted(OBSERVERS)}"
        ) from None


def records_to_frame(records: Iterable[Any]) -> pd.DataFrame:
    """Tabulate observer records (flat dicts or states) as a DataFrame.

    ChemostatState records are reduced with default_observer first.
    """
    rows: List[Dict[str, Any]] = []
    for rec in records:
        if isinstance(rec, ChemostatState):
            rec = default_observer(rec, rec.time)
        rows.append(rec)
    if not rows:
        return pd.DataFrame(columns=DEFAULT_COLUMNS)
    return pd.DataFrame(rows)


def save_timeseries(
    records: Union[pd.DataFrame, Iterable[Any]],
    path: Union[str, Path],
) -> Path:
    """Write a time series to CSV, creating parent directories."""
    frame = records if isinstance(records, pd.DataFrame) else records_to_frame(records)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return path
