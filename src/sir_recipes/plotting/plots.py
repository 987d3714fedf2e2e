# src/sir_recipes/plotting/plots.py
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.collections import LineCollection  # noqa: E402

from ..simulate.batch_processing import column_times  # noqa: E402

logger = logging.getLogger(__name__)

COLOURS = {"S": "#1f77b4", "I": "#d62728", "R": "#2ca02c", "C": "#7f7f7f"}
# Sampler bookkeeping columns that are not model parameters
NON_PARAMETER_COLUMNS = ("distance", "weight", "log_post")

# ---------- helpers ----------


def _save(fig, save_path):
    save_path = Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info("Saved plot to %s", save_path)
    return save_path


def select_indices(n: int, sample_size: Optional[int], random_seed: Optional[int] = None) -> np.ndarray:
    """Random subset of row indices, in increasing order."""
    if sample_size is None or sample_size >= n:
        return np.arange(n)
    rng = np.random.default_rng(random_seed)
    return np.sort(rng.choice(n, size=sample_size, replace=False))

# ---------- single trajectories ----------


def plot_states(
    df: pd.DataFrame,
    save_path: str = "figs/sir_states.png",
    compartments: Sequence[str] = ("S", "I", "R"),
    title: str = "SIR model",
    step: bool = False,
    figsize: Tuple[int, int] = (8, 5),
):
    """Compartments against time. step=True draws event data as a staircase."""
    missing = [c for c in ("t", *compartments) if c not in df.columns]
    if missing:
        raise ValueError(f"Trajectory is missing columns: {missing}")

    fig, ax = plt.subplots(figsize=figsize)
    for comp in compartments:
        if step:
            ax.step(df["t"], df[comp], where="post", label=comp, color=COLOURS.get(comp))
        else:
            ax.plot(df["t"], df[comp], label=comp, color=COLOURS.get(comp))
    ax.set_xlabel("Time")
    ax.set_ylabel("Number")
    ax.set_title(title)
    ax.grid(alpha=0.25)
    ax.legend()
    return _save(fig, save_path)

# ---------- ensembles ----------


def plot_ensemble(
    summary: pd.DataFrame,
    save_path: str = "figs/sir_ensemble.png",
    compartments: Sequence[str] = ("S", "I", "R"),
    quantiles: Tuple[float, float] = (0.05, 0.95),
    title: str = "Ensemble mean and quantiles",
    figsize: Tuple[int, int] = (8, 5),
):
    """Mean line and quantile ribbon per compartment, from summarise_ensemble output."""
    lo_col, hi_col = f"q{quantiles[0]:g}", f"q{quantiles[1]:g}"
    for col in ("t", "compartment", "mean", lo_col, hi_col):
        if col not in summary.columns:
            raise ValueError(f"Summary is missing column '{col}'")

    fig, ax = plt.subplots(figsize=figsize)
    for comp in compartments:
        sub = summary[summary["compartment"] == comp]
        if sub.empty:
            continue
        colour = COLOURS.get(comp)
        ax.plot(sub["t"], sub["mean"], color=colour, linewidth=2.0, label=f"{comp} mean")
        ax.fill_between(
            sub["t"], sub[lo_col], sub[hi_col], color=colour, alpha=0.25,
            label=f"{comp} {int(quantiles[0] * 100)}-{int(quantiles[1] * 100)}%",
        )
    ax.set_xlabel("Time")
    ax.set_ylabel("Number")
    ax.set_title(title)
    ax.grid(alpha=0.25)
    ax.legend(loc="upper right", fontsize="small")
    return _save(fig, save_path)


def plot_batch(
    df: pd.DataFrame,
    time_cols: Sequence[str],
    save_path: str = "figs/batch_trajectories.png",
    sample_size: Optional[int] = 200,
    overlay_quantiles: Optional[Tuple[float, float]] = (0.10, 0.90),
    random_seed: Optional[int] = 42,
    figsize: Tuple[int, int] = (10, 6),
):
    """
    Many stochastic infected curves at once:
    - a random subset drawn with a LineCollection (major outbreaks grey, minor orange)
    - mean and quantile ribbon over all major outbreaks
    """
    if not time_cols:
        raise ValueError("No time columns provided")
    times = column_times(time_cols)
    arr = df[list(time_cols)].to_numpy(dtype=float)
    status = df["status"].to_numpy() if "status" in df.columns else np.full(len(df), "major")

    sel_idx = select_indices(len(df), sample_size, random_seed=random_seed)
    segs = [np.column_stack([times, arr[i]]) for i in sel_idx]
    colours = [(0.3, 0.3, 0.3, 0.35) if status[i] == "major" else (1.0, 0.5, 0.05, 0.5) for i in sel_idx]

    fig, ax = plt.subplots(figsize=figsize)
    ax.add_collection(LineCollection(segs, linewidths=0.9, colors=colours, zorder=1))
    ax.autoscale()

    major = arr[status == "major"]
    if major.shape[0] > 0:
        ax.plot(times, major.mean(axis=0), color="#1f77b4", linewidth=2.0, label="mean (major)")
        if overlay_quantiles:
            q_lo = np.quantile(major, overlay_quantiles[0], axis=0)
            q_hi = np.quantile(major, overlay_quantiles[1], axis=0)
            ax.fill_between(
                times, q_lo, q_hi, color="#7f8fa6", alpha=0.25,
                label=f"{int(overlay_quantiles[0] * 100)}-{int(overlay_quantiles[1] * 100)}%",
            )

    n_major = int((status == "major").sum())
    ax.set_xlabel("Time")
    ax.set_ylabel("Infected")
    ax.set_title(f"Stochastic trajectories ({n_major} of {len(df)} major), plotted {len(sel_idx)}")
    ax.grid(alpha=0.25)
    if n_major > 0:
        ax.legend(loc="upper right", fontsize="small")
    return _save(fig, save_path)

# ---------- inference ----------


def plot_posterior(
    samples: pd.DataFrame,
    save_path: str = "figs/posterior.png",
    truth: Optional[Dict[str, float]] = None,
    bins: int = 30,
    title: str = "Posterior",
):
    """Marginal histograms of each parameter and, for two parameters, a joint scatter."""
    params = [c for c in samples.columns if c not in NON_PARAMETER_COLUMNS]
    weights = samples["weight"] if "weight" in samples.columns else None
    if samples.empty or not params:
        raise ValueError("No posterior samples to plot")

    n_panels = len(params) + (1 if len(params) == 2 else 0)
    fig, axes = plt.subplots(1, n_panels, figsize=(4 * n_panels, 4))
    axes = np.atleast_1d(axes)

    for ax, name in zip(axes, params):
        ax.hist(samples[name], bins=bins, weights=weights, color="#7f8fa6", edgecolor="white")
        if truth and name in truth:
            ax.axvline(truth[name], color="red", linestyle="--", label="truth")
            ax.legend(fontsize="small")
        ax.set_xlabel(name)
        ax.set_ylabel("Count")

    if len(params) == 2:
        ax = axes[-1]
        x, y = params
        ax.scatter(samples[x], samples[y], s=6, alpha=0.4)
        if truth and x in truth and y in truth:
            ax.scatter([truth[x]], [truth[y]], color="red", marker="x", s=60)
        ax.set_xlabel(x)
        ax.set_ylabel(y)

    fig.suptitle(title)
    fig.tight_layout()
    return _save(fig, save_path)


def plot_fit(
    observations: pd.DataFrame,
    fitted: np.ndarray,
    save_path: str = "figs/fit.png",
    title: str = "Observed vs fitted incidence",
):
    """Observed daily cases as points, model incidence as a line."""
    fitted = np.asarray(fitted, dtype=float)
    if fitted.size != len(observations):
        raise ValueError("fitted must have one value per observation")

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.scatter(observations["day"], observations["cases"], color="black", s=18, label="observed")
    ax.plot(observations["day"], fitted, color="C1", linewidth=2.0, label="model")
    ax.set_xlabel("Day")
    ax.set_ylabel("New cases")
    ax.set_title(title)
    ax.grid(alpha=0.25)
    ax.legend()
    return _save(fig, save_path)
