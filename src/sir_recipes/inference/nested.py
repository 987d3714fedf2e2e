# src/sir_recipes/inference/nested.py
"""
Nested sampling for theta = (i0, beta) with dynesty.

dynesty estimates the marginal likelihood (evidence) log Z and returns
weighted posterior draws, which are resampled here to equal weights.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, Optional, Tuple

import dynesty
import numpy as np
import pandas as pd
from dynesty import utils as dyfunc
from numpy.random import default_rng

from ..model.sir import CONTACT_RATE, GAMMA
from .likelihood import N_POP, THETA_NAMES, poisson_loglik

logger = logging.getLogger(__name__)


@dataclass
class NestedConfig:
    priors: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {"i0": (0.001, 0.1), "beta": (0.01, 0.1)}
    )
    nlive: int = 200
    dlogz: float = 0.1
    maxiter: Optional[int] = None
    seed: Optional[int] = None


@dataclass
class NestedResult:
    logz: float
    logzerr: float
    samples: pd.DataFrame
    means: Dict[str, float]
    niter: int


def prior_bounds(priors) -> np.ndarray:
    """(low, high) rows in THETA_NAMES order."""
    missing = [k for k in THETA_NAMES if k not in priors]
    if missing:
        raise ValueError(f"Missing priors for: {missing}")
    bounds = np.array([priors[k] for k in THETA_NAMES], dtype=float)
    if np.any(bounds[:, 0] >= bounds[:, 1]):
        raise ValueError("Each prior needs low < high")
    return bounds


def prior_transform(u, bounds):
    """Map the unit cube onto independent uniform priors."""
    u = np.asarray(u, dtype=float)
    return bounds[:, 0] + u * (bounds[:, 1] - bounds[:, 0])


def _loglike(theta, cases, N, c, gamma, tmax):
    return poisson_loglik(theta, cases, N=N, c=c, gamma=gamma, tmax=tmax)


def run_nested(cases, cfg: Optional[NestedConfig] = None, N=N_POP, c=CONTACT_RATE, gamma=GAMMA, tmax=None):
    """Run dynesty's static nested sampler on daily case counts.

    tmax defaults to one day per observation.
    """
    if cfg is None:
        cfg = NestedConfig()
    cases = np.asarray(cases)
    if cases.size == 0:
        raise ValueError("No observations")
    if tmax is None:
        tmax = float(cases.size)
    elif tmax < cases.size:
        raise ValueError(f"tmax={tmax:g} is shorter than the {cases.size} observed days")
    if cfg.nlive < len(THETA_NAMES) + 1:
        raise ValueError("nlive is too small")

    bounds = prior_bounds(cfg.priors)
    rng = default_rng(cfg.seed)

    sampler = dynesty.NestedSampler(
        partial(_loglike, cases=cases, N=N, c=c, gamma=gamma, tmax=tmax),
        partial(prior_transform, bounds=bounds),
        len(THETA_NAMES),
        nlive=cfg.nlive,
        rstate=rng,
    )
    sampler.run_nested(dlogz=cfg.dlogz, maxiter=cfg.maxiter, print_progress=False)
    res = sampler.results

    logz = float(res.logz[-1])
    logzerr = float(res.logzerr[-1])
    weights = np.exp(res.logwt - res.logz[-1])
    weights /= weights.sum()

    means, _ = dyfunc.mean_and_cov(res.samples, weights)
    equal = dyfunc.resample_equal(res.samples, weights, rstate=rng)
    samples = pd.DataFrame(equal, columns=list(THETA_NAMES))

    logger.info("Nested sampling: log Z = %.3f +/- %.3f after %d iterations", logz, logzerr, res.niter)
    return NestedResult(
        logz=logz,
        logzerr=logzerr,
        samples=samples,
        means=dict(zip(THETA_NAMES, (float(m) for m in means))),
        niter=int(res.niter),
    )
