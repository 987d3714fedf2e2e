# src/sir_recipes/inference/mcmc.py
"""
Random-walk Metropolis for theta = (i0, beta).

Targets the Poisson likelihood of the daily cases times uniform priors.
Proposals are independent Gaussian steps per parameter; anything outside
the prior box has log posterior -inf and is always rejected.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..model.sir import CONTACT_RATE, GAMMA
from .likelihood import N_POP, THETA_NAMES, poisson_loglik

logger = logging.getLogger(__name__)


@dataclass
class MCMCConfig:
    priors: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {"i0": (0.001, 0.1), "beta": (0.01, 0.1)}
    )
    n_iter: int = 5000
    burn: int = 1000
    proposal_sd: Sequence[float] = (0.002, 0.002)
    x0: Optional[Sequence[float]] = None
    seed: Optional[int] = None


@dataclass
class MCMCResult:
    samples: pd.DataFrame
    acceptance_rate: float
    means: Dict[str, float]


def log_prior(theta, priors) -> float:
    for name, value in zip(THETA_NAMES, theta):
        low, high = priors[name]
        if not low < value < high:
            return -np.inf
    return 0.0


def log_posterior(theta, cases, priors, N=N_POP, c=CONTACT_RATE, gamma=GAMMA) -> float:
    lp = log_prior(theta, priors)
    if not np.isfinite(lp):
        return lp
    return lp + poisson_loglik(theta, cases, N=N, c=c, gamma=gamma)


def run_mcmc(cases, cfg: Optional[MCMCConfig] = None, N=N_POP, c=CONTACT_RATE, gamma=GAMMA):
    """Run one chain and drop the first cfg.burn states.

    Returns:
        MCMCResult; samples has columns i0, beta, log_post
    """
    if cfg is None:
        cfg = MCMCConfig()
    cases = np.asarray(cases)
    if cases.size == 0:
        raise ValueError("No observations")
    if cfg.n_iter < 1 or not 0 <= cfg.burn < cfg.n_iter:
        raise ValueError("Need n_iter >= 1 and 0 <= burn < n_iter")
    sd = np.asarray(cfg.proposal_sd, dtype=float)
    if sd.shape != (len(THETA_NAMES),) or np.any(sd <= 0):
        raise ValueError("proposal_sd needs one positive value per parameter")
    missing = [k for k in THETA_NAMES if k not in cfg.priors]
    if missing:
        raise ValueError(f"Missing priors for: {missing}")

    rng = default_rng(cfg.seed)
    if cfg.x0 is None:
        theta = np.array([sum(cfg.priors[k]) / 2 for k in THETA_NAMES])
    else:
        theta = np.asarray(cfg.x0, dtype=float)

    log_post = log_posterior(theta, cases, cfg.priors, N=N, c=c, gamma=gamma)
    if not np.isfinite(log_post):
        raise ValueError(f"Starting point {theta} has zero posterior density")

    chain = np.empty((cfg.n_iter, len(THETA_NAMES) + 1))
    n_accept = 0
    for i in range(cfg.n_iter):
        prop = theta + sd * rng.standard_normal(theta.size)
        log_post_prop = log_posterior(prop, cases, cfg.priors, N=N, c=c, gamma=gamma)
        if np.log(rng.random()) < log_post_prop - log_post:
            theta, log_post = prop, log_post_prop
            n_accept += 1
        chain[i, :-1] = theta
        chain[i, -1] = log_post

    rate = n_accept / cfg.n_iter
    samples = pd.DataFrame(chain[cfg.burn:], columns=[*THETA_NAMES, "log_post"])
    means = {k: float(samples[k].mean()) for k in THETA_NAMES}
    logger.info("MCMC: %d iterations, acceptance rate %.3f", cfg.n_iter, rate)
    return MCMCResult(samples=samples, acceptance_rate=rate, means=means)
