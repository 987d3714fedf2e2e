# src/sir_recipes/simulate/batch_processing.py
#
# Runs many stochastic SIR realisations (jump process or Markov chain) and
# writes them to a CSV, one row per simulation:
#   sim_id, final_size, peak_I, peak_time, status, I_<t_0>, ..., I_<t_max>
# status is "major" if the final size reached major_threshold, else "minor"
# (the chain of transmission died out early).

import csv
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..model.sir import DEFAULT_PARAMS, DT, TMAX, U0, SIRParams, time_grid
from .discrete import markov_chain
from .jump import simulate_jump_grid

logger = logging.getLogger(__name__)

METHODS = ("jump", "markov")
TIME_PREFIX = "I_"


@dataclass
class BatchConfig:
    N: int = 1000
    method: str = "jump"
    u0: Sequence[float] = U0
    params: SIRParams = field(default_factory=SIRParams)
    tmax: float = TMAX
    dt: float = 1.0
    major_threshold: int = 100
    seed: Optional[int] = None
    out_path: Optional[str] = "data/batch_simulations.csv"
    use_tempfile: bool = False


def default_csv_path(use_tempfile=True):
    """Define the filepath of csv"""
    if use_tempfile:
        tf = tempfile.NamedTemporaryFile(prefix="sir_batch_", suffix=".csv")
        p = Path(tf.name)
        tf.close()
        return p
    return Path("sir_batch.csv")


def time_columns(grid: np.ndarray) -> List[str]:
    return [f"{TIME_PREFIX}{t:g}" for t in grid]


def run_single(method, u0, p, tmax, dt, rng):
    """One realisation on the dt grid."""
    if method == "jump":
        return simulate_jump_grid(u0=u0, p=p, tmax=tmax, dt=dt, rng=rng)
    if method == "markov":
        return markov_chain(u0=u0, p=p, tmax=tmax, dt=dt, rng=rng)
    raise ValueError(f"Unknown method: {method} (expected one of {METHODS})")


def generate_batch(
    N,
    method="jump",
    u0=U0,
    p=DEFAULT_PARAMS,
    tmax=TMAX,
    dt=DT,
    major_threshold=100,
    out_path=None,
    use_tempfile=True,
    seed=None,
):
    """Simulate N stochastic trajectories and write them to CSV.

    Returns:
        (I_matrix of shape (N, n_times), csv_path)
    """
    if N < 1:
        raise ValueError("N must be >= 1")
    if method not in METHODS:
        raise ValueError(f"Unknown method: {method} (expected one of {METHODS})")

    rng = default_rng(seed)
    grid = time_grid(tmax, dt)

    # Do file pathing
    if out_path is None:
        csv_path = default_csv_path(use_tempfile=use_tempfile)
    else:
        csv_path = Path(out_path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    header = ["sim_id", "final_size", "peak_I", "peak_time", "status"] + time_columns(grid)
    infected = np.zeros((N, grid.size), dtype=int)
    n_major = 0

    with csv_path.open("w", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(header)

        for sim_id in range(1, N + 1):
            df = run_single(method, u0, p, tmax, dt, rng)

            I = df["I"].to_numpy(dtype=int)
            peak_idx = int(np.argmax(I))
            # Everyone infected at some point: initial cases plus new ones
            final_size = int(df["C"].iloc[-1] - df["C"].iloc[0] + df["I"].iloc[0])
            status = "major" if final_size >= major_threshold else "minor"
            n_major += status == "major"

            infected[sim_id - 1, :] = I
            writer.writerow([sim_id, final_size, int(I[peak_idx]), float(grid[peak_idx]), status, *I.tolist()])

    logger.info("%d %s simulations, %d major (threshold %d)", N, method, n_major, major_threshold)
    return infected, csv_path


def simulate_batch(cfg: BatchConfig):
    """Run generate_batch from a BatchConfig."""
    infected, csv_path = generate_batch(
        N=int(cfg.N),
        method=cfg.method,
        u0=cfg.u0,
        p=cfg.params,
        tmax=cfg.tmax,
        dt=cfg.dt,
        major_threshold=cfg.major_threshold,
        out_path=cfg.out_path,
        use_tempfile=cfg.use_tempfile,
        seed=cfg.seed,
    )
    logger.info("CSV written to: %s", csv_path)
    return infected, csv_path


def load_batch_csv(path) -> Tuple[pd.DataFrame, List[str]]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Batch CSV not found: {path}")
    df = pd.read_csv(path)
    time_cols = [c for c in df.columns if c.startswith(TIME_PREFIX)]
    if not time_cols:
        raise ValueError(f"No columns starting with '{TIME_PREFIX}' found in {path}")
    time_cols = sorted(time_cols, key=lambda s: float(s[len(TIME_PREFIX):]))
    return df, time_cols


def column_times(time_cols: Sequence[str]) -> np.ndarray:
    return np.array([float(c[len(TIME_PREFIX):]) for c in time_cols])


def summarise_batch(df: pd.DataFrame, time_cols: Sequence[str], quantiles=(0.1, 0.9), status=None) -> pd.DataFrame:
    """Mean and quantile band of I at each grid time.

    status: restrict to "major" or "minor" outbreaks (None keeps all)
    """
    if status is not None:
        df = df[df["status"] == status]
    if df.empty:
        raise ValueError("No simulations to summarise")
    arr = df[list(time_cols)].to_numpy(dtype=float)
    q_lo, q_hi = quantiles
    return pd.DataFrame({
        "t": column_times(time_cols),
        "mean": arr.mean(axis=0),
        "q_lo": np.quantile(arr, q_lo, axis=0),
        "q_hi": np.quantile(arr, q_hi, axis=0),
    })
