# src/sir_recipes/simulate/ode.py
# Deterministic SIR trajectories. Integration is handed to scipy's solve_ivp;
# this module only sets up the problem and reshapes the output.

import logging
from typing import Dict

import numpy as np
import pandas as pd
from scipy.integrate import solve_ivp

from ..model.sir import (
    DEFAULT_PARAMS,
    DT,
    STATE_NAMES,
    TMAX,
    U0,
    as_params,
    check_state,
    sir_ode,
    time_grid,
)

logger = logging.getLogger(__name__)


def solve_ode(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, dt=DT, method="RK45", rtol=1e-8, atol=1e-8):
    """Integrate the SIR ODE and return the solution on a regular grid.

    Args:
        u0: initial (S, I, R, C)
        p: SIRParams or (beta, c, gamma)
        tmax: final time
        dt: spacing of the output grid (the solver chooses its own steps)
        method: any solve_ivp method name, e.g. "RK45", "LSODA", "Radau"
    Returns:
        pd.DataFrame with columns t, S, I, R, C
    Raises:
        ValueError, RuntimeError
    """
    u = check_state(u0)
    params = as_params(p)
    t_eval = time_grid(tmax, dt)

    sol = solve_ivp(
        sir_ode,
        (0.0, float(t_eval[-1])),
        u,
        method=method,
        t_eval=t_eval,
        args=(params,),
        rtol=rtol,
        atol=atol,
    )
    if not sol.success:
        raise RuntimeError(f"ODE solver failed: {sol.message}")

    logger.debug("solve_ivp (%s): %d RHS evaluations", method, sol.nfev)

    df = pd.DataFrame(sol.y.T, columns=list(STATE_NAMES))
    df.insert(0, "t", sol.t)
    return df


def daily_incidence(df: pd.DataFrame) -> pd.DataFrame:
    """New infections per whole day, from the cumulative counter C.

    The trajectory must contain every integer time point up to its end.
    """
    if "t" not in df.columns or "C" not in df.columns:
        raise ValueError("Trajectory must have 't' and 'C' columns")
    t = df["t"].to_numpy(dtype=float)
    days = np.arange(0, int(np.floor(t[-1] + 1e-9)) + 1)
    if days.size < 2:
        raise ValueError("Trajectory must span at least one day")

    # Step-function lookup works for both ODE grids and event-time jump output
    idx = np.searchsorted(t, days + 1e-9, side="right") - 1
    C = df["C"].to_numpy(dtype=float)[idx]
    return pd.DataFrame({"day": days[1:], "incidence": np.diff(C)})


def summarise_trajectory(df: pd.DataFrame) -> Dict[str, float]:
    """Peak prevalence, when it happens, and the final epidemic size."""
    I = df["I"].to_numpy(dtype=float)
    idx = int(np.argmax(I))
    N0 = float(df["S"].iloc[0] + df["I"].iloc[0] + df["R"].iloc[0])
    final_size = float(df["C"].iloc[-1] - df["C"].iloc[0] + df["I"].iloc[0]) / N0
    return {
        "peak_I": float(I[idx]),
        "peak_time": float(df["t"].iloc[idx]),
        "final_size": final_size,
    }
