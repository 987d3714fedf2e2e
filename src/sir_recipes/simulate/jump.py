# src/sir_recipes/simulate/jump.py
# Stochastic SIR as a continuous-time jump process (Gillespie direct method).
#
# Two reactions:
#   infection  S -> I   (C += 1)   rate beta * c * I / N * S
#   recovery   I -> R              rate gamma * I

import logging

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..model.sir import (
    DEFAULT_PARAMS,
    DT,
    STATE_NAMES,
    TMAX,
    U0,
    as_params,
    check_state,
    sir_rates,
    time_grid,
)

logger = logging.getLogger(__name__)

# State change for each reaction, columns S, I, R, C
STOICHIOMETRY = np.array([
    [-1, 1, 0, 1],
    [0, -1, 1, 0],
], dtype=np.int64)


def simulate_jump(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, rng=None):
    """Simulate one realisation of the jump process up to tmax.

    Returns:
        pd.DataFrame with columns t, S, I, R, C; one row per event,
        the first row holding the initial state at t=0.
    """
    u = check_state(u0)
    if np.any(u != np.round(u)):
        raise ValueError("Jump process needs an integer initial state")
    if tmax <= 0:
        raise ValueError("tmax must be positive")
    params = as_params(p)

    if rng is None:
        rng = default_rng()

    state = u.astype(np.int64)
    t = 0.0
    times = [t]
    states = [state.copy()]

    while True:
        a_inf, a_rec = sir_rates(state, params)
        a0 = a_inf + a_rec
        if a0 <= 0.0:
            logger.debug("No events possible at t=%.3f, stopping", t)
            break

        t += rng.exponential(1.0 / a0)
        if t > tmax:
            break

        # Pick which reaction fires in proportion to its propensity
        reaction = 0 if rng.random() * a0 < a_inf else 1
        state = state + STOICHIOMETRY[reaction]

        times.append(t)
        states.append(state.copy())

    df = pd.DataFrame(np.vstack(states), columns=list(STATE_NAMES))
    df.insert(0, "t", np.asarray(times))
    return df


def resample_to_grid(events: pd.DataFrame, tmax=TMAX, dt=DT) -> pd.DataFrame:
    """Hold each event state until the next event, sampled on a regular grid."""
    grid = time_grid(tmax, dt)
    t = events["t"].to_numpy(dtype=float)
    idx = np.searchsorted(t, grid, side="right") - 1
    idx[idx < 0] = 0

    out = events[list(STATE_NAMES)].iloc[idx].reset_index(drop=True)
    out.insert(0, "t", grid)
    return out


def simulate_jump_grid(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, dt=DT, rng=None):
    """simulate_jump followed by resample_to_grid."""
    events = simulate_jump(u0=u0, p=p, tmax=tmax, rng=rng)
    return resample_to_grid(events, tmax=tmax, dt=dt)
