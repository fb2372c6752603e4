"""Continuous-limit chemostat: the deterministic model the IBM approximates.

    dX/dt = (r(S) − D)·X
    dS/dt = D·(S_0 − S) − r(S)·X / Y
    r(S)  = r_max·S / (k_s + S)

with biomass concentration X = N / V. As DELTAT → 0 the expected
trajectory of the individual-based engine follows this system, which
makes it the reference for checking the discretization.

Integration is delegated to scipy.integrate.solve_ivp.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.integrate import solve_ivp

from chemostat_ibm.config import ChemostatParams
from chemostat_ibm.engine import monod_rate


def chemostat_rhs(t: float, y: Sequence[float], params: ChemostatParams) -> list:
    """Right-hand side for y = [X, S]."""
    X, S = y
    S = max(S, 0.0)
    r = monod_rate(S, params.r_max, params.k_s)
    dXdt = (r - params.D) * X
    dSdt = params.D * (params.S_0 - S) - r * X / params.Y
    return [dXdt, dSdt]


def solve_chemostat(
    params: ChemostatParams,
    times: Sequence[float],
    N_0: float,
    S_init: float,
    rtol: float = 1e-6,
    atol: float = 1e-9,
) -> pd.DataFrame:
    """Integrate the continuous model over ``times``.

    Returns:
        DataFrame with columns time, N, S, X (N = X·volume, real-valued).

    Raises:
        RuntimeError: If the integrator reports failure.
    """
    times = np.asarray(times, dtype=np.float64)
    y0 = [N_0 / params.volume, S_init]
    sol = solve_ivp(
        chemostat_rhs, (times[0], times[-1]), y0,
        t_eval=times, args=(params,), rtol=rtol, atol=atol,
    )
    if not sol.success:
        raise RuntimeError(f"ODE integration failed: {sol.message}")
    X = sol.y[0]
    return pd.DataFrame({
        "time": sol.t,
        "N": X * params.volume,
        "S": np.maximum(sol.y[1], 0.0),
        "X": X,
    })


def washout_rate(params: ChemostatParams) -> float:
    """Critical dilution rate D_c = r(S_0); at D >= D_c biomass washes out."""
    return monod_rate(params.S_0, params.r_max, params.k_s)


def steady_state(params: ChemostatParams) -> Tuple[float, float]:
    """Non-trivial steady state (S*, X*), or washout (S_0, 0).

    S* = k_s·D / (r_max − D)
    X* = Y·(S_0 − S*)
    """
    if params.D >= washout_rate(params):
        return params.S_0, 0.0
    S_star = params.k_s * params.D / (params.r_max - params.D)
    X_star = params.Y * (params.S_0 - S_star)
    return S_star, X_star
