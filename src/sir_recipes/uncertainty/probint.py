# src/sir_recipes/uncertainty/probint.py
# Probabilistic integration of the SIR ODE (Conrad et al. 2017).
#
# Each step [t_n, t_n + dt] is integrated by solve_ivp and the state is then
# perturbed by independent Gaussian noise with standard deviation
# sigma * dt ** (order + 0.5). The spread of an ensemble of such runs is the
# solver's own estimate of its numerical error.

import logging

import numpy as np
import pandas as pd
from numpy.random import default_rng
from scipy.integrate import solve_ivp

from ..model.sir import DEFAULT_PARAMS, STATE_NAMES, TMAX, U0, as_params, check_state, sir_ode, time_grid

logger = logging.getLogger(__name__)


def noise_scale(dt, sigma, order):
    return sigma * dt ** (order + 0.5)


def perturbed_trajectory(u0, p, grid, sigma, order, rng, method="RK45"):
    """One perturbed solution on the grid, as an (n_times, 4) array."""
    u = np.asarray(u0, dtype=float)

    out = np.empty((grid.size, u.size))
    out[0] = u
    for n in range(grid.size - 1):
        sol = solve_ivp(sir_ode, (grid[n], grid[n + 1]), u, method=method, args=(p,))
        if not sol.success:
            raise RuntimeError(f"ODE solver failed at t={grid[n]:g}: {sol.message}")
        scale = noise_scale(grid[n + 1] - grid[n], sigma, order)
        u = sol.y[:, -1] + scale * rng.standard_normal(u.size)
        out[n + 1] = u
    return out


def probint_ensemble(
    u0=U0,
    p=DEFAULT_PARAMS,
    tmax=TMAX,
    dt=1.0,
    sigma=0.2,
    order=1,
    n_trajectories=100,
    seed=None,
    method="RK45",
):
    """Ensemble of perturbed ODE solutions.

    Args:
        sigma: noise magnitude
        order: convergence order assumed for the step error
        n_trajectories: ensemble size
    Returns:
        long pd.DataFrame with columns trajectory, t, S, I, R, C
    """
    if sigma < 0:
        raise ValueError("sigma must be non-negative")
    if order < 0:
        raise ValueError("order must be non-negative")
    if n_trajectories < 1:
        raise ValueError("n_trajectories must be >= 1")

    u = check_state(u0)
    params = as_params(p)
    grid = time_grid(tmax, dt)
    rng = default_rng(seed)

    logger.info(
        "Probabilistic integration: %d trajectories, dt=%g, noise sd=%.3g",
        n_trajectories, dt, noise_scale(dt, sigma, order),
    )

    frames = []
    for k in range(n_trajectories):
        arr = perturbed_trajectory(u, params, grid, sigma, order, rng, method=method)
        df = pd.DataFrame(arr, columns=list(STATE_NAMES))
        df.insert(0, "t", grid)
        df.insert(0, "trajectory", k)
        frames.append(df)
    return pd.concat(frames, ignore_index=True)
