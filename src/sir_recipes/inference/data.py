# src/sir_recipes/inference/data.py
# Synthetic "observed" case counts: Poisson noise around the ODE daily incidence.

from pathlib import Path

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..model.sir import DEFAULT_PARAMS, TMAX, U0
from ..simulate.ode import daily_incidence, solve_ode

OBS_COLUMNS = ("day", "cases")


def simulate_observations(u0=U0, p=DEFAULT_PARAMS, tmax=TMAX, rng=None) -> pd.DataFrame:
    """Daily case counts drawn as Poisson(incidence)."""
    if rng is None:
        rng = default_rng()
    inc = daily_incidence(solve_ode(u0=u0, p=p, tmax=tmax, dt=1.0))
    lam = np.clip(inc["incidence"].to_numpy(dtype=float), 0.0, None)
    return pd.DataFrame({"day": inc["day"].to_numpy(), "cases": rng.poisson(lam)})


def save_observations(obs: pd.DataFrame, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    obs.loc[:, list(OBS_COLUMNS)].to_csv(path, index=False)
    return path


def load_observations(path) -> pd.DataFrame:
    """Read a day/cases CSV, sorted by day."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Observations CSV not found: {path}")
    df = pd.read_csv(path)
    missing = [c for c in OBS_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Observations CSV is missing columns: {missing}")
    df = df.sort_values("day").reset_index(drop=True)
    df["cases"] = df["cases"].astype(int)
    return df
