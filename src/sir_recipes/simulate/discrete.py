# src/sir_recipes/simulate/discrete.py
# Discrete-time versions of the SIR model on a fixed step dt.
# Per step, each susceptible is infected with probability 1 - exp(-beta*c*I/N*dt)
# and each infected recovers with probability 1 - exp(-gamma*dt).

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
    time_grid,
)


def step_probabilities(u, p, dt):
    """Return (infection probability, recovery probability) for one step."""
    S, I, R, _ = u
    beta, c, gamma = p
    N = S + I + R
    ifrac = 1.0 - np.exp(-beta * c * I / N * dt)
    rfrac = 1.0 - np.exp(-gamma * dt)
    return ifrac, rfrac


def _to_frame(grid, rows):
    df = pd.DataFrame(np.asarray(rows, dtype=float), columns=list(STATE_NAMES))
    df.insert(0, "t", grid)
    return df


def function_map(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, dt=DT):
    """Deterministic map: move the expected number of individuals each step."""
    u = check_state(u0)
    params = as_params(p)
    grid = time_grid(tmax, dt)

    rows = [u.copy()]
    for h in np.diff(grid):
        S, I, R, C = u
        ifrac, rfrac = step_probabilities(u, params, h)
        infection = ifrac * S
        recovery = rfrac * I
        u = np.array([S - infection, I + infection - recovery, R + recovery, C + infection])
        rows.append(u)

    return _to_frame(grid, rows)


def markov_chain(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, dt=DT, rng=None):
    """Stochastic chain: binomial numbers of infections and recoveries each step."""
    u = check_state(u0)
    if np.any(u != np.round(u)):
        raise ValueError("Markov chain needs an integer initial state")
    params = as_params(p)
    grid = time_grid(tmax, dt)

    if rng is None:
        rng = default_rng()

    state = u.astype(np.int64)
    rows = [state.copy()]
    for h in np.diff(grid):
        S, I, R, C = state
        ifrac, rfrac = step_probabilities(state, params, h)
        infection = int(rng.binomial(S, ifrac))
        recovery = int(rng.binomial(I, rfrac))
        state = np.array([S - infection, I + infection - recovery, R + recovery, C + infection], dtype=np.int64)
        rows.append(state)

    return _to_frame(grid, rows)
