# src/sir_recipes/uncertainty/montecarlo.py
"""
Propagate parameter uncertainty through the SIR ODE by Monte Carlo.

Each of beta, c and gamma is either a fixed number or a frozen
scipy.stats distribution. Draws are pushed through solve_ode one at a time
(in parallel with joblib when n_jobs != 1) and the resulting particle
ensemble is summarised by its mean and quantiles at every time point.
"""

import logging
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from numpy.random import default_rng
from scipy import stats

from ..model.sir import DEFAULT_PARAMS, DT, STATE_NAMES, TMAX, U0, as_params
from ..simulate.ode import solve_ode

logger = logging.getLogger(__name__)

PARAM_NAMES = ("beta", "c", "gamma")


def uniform_around(p, spread=0.2) -> Dict[str, object]:
    """Uniform distributions of relative half-width spread around beta and gamma; c fixed."""
    if not 0.0 <= spread < 1.0:
        raise ValueError("spread must lie in [0, 1)")
    beta, c, gamma = as_params(p)
    if spread == 0.0:
        return {"beta": beta, "c": c, "gamma": gamma}
    return {
        "beta": stats.uniform(loc=beta * (1 - spread), scale=2 * spread * beta),
        "c": c,
        "gamma": stats.uniform(loc=gamma * (1 - spread), scale=2 * spread * gamma),
    }


def default_distributions() -> Dict[str, object]:
    """Textbook parameters with +-20% uniform uncertainty on beta and gamma."""
    return uniform_around(DEFAULT_PARAMS, spread=0.2)


def sample_parameters(distributions: Dict[str, object], n: int, rng=None) -> pd.DataFrame:
    """Draw n parameter sets; numbers are repeated, distributions sampled.

    Returns:
        pd.DataFrame with columns beta, c, gamma
    """
    if n < 1:
        raise ValueError("n must be >= 1")
    missing = [k for k in PARAM_NAMES if k not in distributions]
    if missing:
        raise ValueError(f"Missing distributions for: {missing}")
    if rng is None:
        rng = default_rng()

    cols = {}
    for name in PARAM_NAMES:
        d = distributions[name]
        if hasattr(d, "rvs"):
            cols[name] = np.asarray(d.rvs(size=n, random_state=rng), dtype=float)
        else:
            cols[name] = np.full(n, float(d))
        if np.any(cols[name] < 0):
            raise ValueError(f"Distribution for {name} produced negative values")
    return pd.DataFrame(cols)


def _solve_one(k, u0, params, tmax, dt):
    df = solve_ode(u0=u0, p=params, tmax=tmax, dt=dt)
    df.insert(0, "trajectory", k)
    return df


def propagate(
    u0=U0,
    distributions: Optional[Dict[str, object]] = None,
    tmax=TMAX,
    dt=DT,
    n_samples=100,
    seed=None,
    n_jobs=1,
):
    """Solve the ODE once per parameter draw.

    Returns:
        long pd.DataFrame with columns trajectory, t, S, I, R, C, beta, c, gamma
    """
    if distributions is None:
        distributions = default_distributions()
    rng = default_rng(seed)
    draws = sample_parameters(distributions, n_samples, rng=rng)

    frames = Parallel(n_jobs=n_jobs)(
        delayed(_solve_one)(k, u0, tuple(row), tmax, dt)
        for k, row in enumerate(draws[list(PARAM_NAMES)].itertuples(index=False, name=None))
    )
    out = pd.concat(frames, ignore_index=True)
    out = out.merge(draws.rename_axis("trajectory").reset_index(), on="trajectory", how="left")
    logger.info("Propagated %d parameter draws", n_samples)
    return out


def summarise_ensemble(df: pd.DataFrame, quantiles: Sequence[float] = (0.05, 0.95), compartments=STATE_NAMES) -> pd.DataFrame:
    """Mean and quantiles of each compartment at each time.

    Works on any long ensemble frame with 't' and one column per compartment.

    Returns:
        pd.DataFrame with columns t, compartment, mean, q<quantile>...
    """
    if df.empty:
        raise ValueError("Empty ensemble")
    long = df.melt(id_vars=["t"], value_vars=list(compartments), var_name="compartment")
    # Round times so float noise from different grids groups together
    long["t"] = long["t"].round(9)
    grouped = long.groupby(["t", "compartment"], sort=True)["value"]

    summary = grouped.mean().rename("mean").to_frame()
    for q in quantiles:
        summary[f"q{q:g}"] = grouped.quantile(q)
    return summary.reset_index()
