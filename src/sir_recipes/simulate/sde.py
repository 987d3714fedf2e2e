# src/sir_recipes/simulate/sde.py
# Diffusion approximation of the SIR jump process, integrated by Euler-Maruyama.
#
# Each reaction count over a step h is replaced by its Gaussian approximation
#   infections  a_inf * h + sqrt(a_inf * h) * Z1
#   recoveries  a_rec * h + sqrt(a_rec * h) * Z2
# with independent standard normals Z1, Z2, so S, I, R share the two noise
# sources the same way the jump process shares its two reactions.
# Counts are clipped to [0, S] and [0, I] so compartments stay non-negative.

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


def simulate_sde(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, dt=DT, rng=None):
    """One Euler-Maruyama path on the dt grid.

    Returns:
        pd.DataFrame with columns t, S, I, R, C
    """
    u = check_state(u0)
    params = as_params(p)
    grid = time_grid(tmax, dt)

    if rng is None:
        rng = default_rng()

    out = np.empty((grid.size, 4))
    out[0] = u
    for n, h in enumerate(np.diff(grid)):
        S, I, R, C = u
        a_inf, a_rec = sir_rates(u, params)
        z = rng.standard_normal(2)
        infection = min(max(a_inf * h + np.sqrt(a_inf * h) * z[0], 0.0), S)
        recovery = min(max(a_rec * h + np.sqrt(a_rec * h) * z[1], 0.0), I)
        u = np.array([S - infection, I + infection - recovery, R + recovery, C + infection])
        out[n + 1] = u

    df = pd.DataFrame(out, columns=list(STATE_NAMES))
    df.insert(0, "t", grid)
    return df


def sde_ensemble(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, dt=DT, n_trajectories=100, seed=None):
    """Independent SDE paths stacked in a long frame (trajectory, t, S, I, R, C)."""
    if n_trajectories < 1:
        raise ValueError("n_trajectories must be >= 1")
    rng = default_rng(seed)

    frames = []
    for k in range(n_trajectories):
        df = simulate_sde(u0=u0, p=p, tmax=tmax, dt=dt, rng=rng)
        df.insert(0, "trajectory", k)
        frames.append(df)

    logger.info("SDE ensemble: %d paths, dt=%g", n_trajectories, dt)
    return pd.concat(frames, ignore_index=True)
