# src/sir_recipes/inference/abc.py
"""
Approximate Bayesian computation for theta = (i0, beta).

Parameters are pushed through a simulator and kept when the simulated daily
incidence lies within epsilon of the observed counts.

abc_rejection draws straight from the priors at a fixed epsilon.
abc_smc runs a sequence of populations with shrinking epsilon: each new
population perturbs particles of the previous one with a Gaussian kernel
and is importance-weighted against the priors.

Simulations run in joblib batches, so n_jobs=-1 uses every core. Every draw
gets its own SeedSequence child, so results do not depend on n_jobs.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from numpy.random import SeedSequence, default_rng
from scipy import stats

from ..model.sir import CONTACT_RATE, GAMMA, initial_state
from ..simulate.discrete import markov_chain
from ..simulate.ode import daily_incidence
from .likelihood import N_POP, THETA_NAMES, model_incidence

logger = logging.getLogger(__name__)

METHODS = ("rejection", "smc")


@dataclass
class ABCConfig:
    priors: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {"i0": (0.001, 0.1), "beta": (0.01, 0.1)}
    )
    epsilon: float = 50.0
    n_particles: int = 500
    max_simulations: int = 100000
    batch_size: int = 1000
    n_jobs: int = 1
    seed: Optional[int] = None
    # SMC only: number of populations, and the quantile of the previous
    # population's distances used as the next epsilon
    n_populations: int = 4
    quantile: float = 0.5


@dataclass
class ABCResult:
    samples: pd.DataFrame
    n_simulations: int
    acceptance_rate: float
    epsilons: List[float] = field(default_factory=list)


def euclidean_distance(a, b) -> float:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Shape mismatch: {a.shape} vs {b.shape}")
    return float(np.sqrt(np.sum((a - b) ** 2)))


def ode_simulator(theta, rng=None, N=N_POP, c=CONTACT_RATE, gamma=GAMMA, tmax=40.0):
    """Deterministic daily incidence (rng is ignored)."""
    return model_incidence(theta, N=N, c=c, gamma=gamma, tmax=tmax)


def markov_simulator(theta, rng=None, N=N_POP, c=CONTACT_RATE, gamma=GAMMA, tmax=40.0, dt=0.1):
    """Stochastic daily incidence from the discrete-time Markov chain."""
    i0, beta = theta
    u0 = np.round(initial_state(N, i0))
    df = markov_chain(u0=u0, p=(beta, c, gamma), tmax=tmax, dt=dt, rng=rng)
    return daily_incidence(df)["incidence"].to_numpy(dtype=float)


def prior_distributions(priors) -> Dict[str, object]:
    """Uniform scipy.stats priors from (low, high) pairs."""
    out = {}
    for name in THETA_NAMES:
        if name not in priors:
            raise ValueError(f"Missing prior for {name}")
        low, high = priors[name]
        if low >= high:
            raise ValueError(f"Prior for {name} needs low < high")
        out[name] = stats.uniform(loc=low, scale=high - low)
    return out


def prior_density(thetas, dists) -> np.ndarray:
    """Joint prior density of each row of thetas."""
    thetas = np.atleast_2d(thetas)
    dens = np.ones(len(thetas))
    for k, name in enumerate(THETA_NAMES):
        dens *= dists[name].pdf(thetas[:, k])
    return dens


def _distance_for(theta, seed, observed, simulator, distance):
    rng = default_rng(seed)
    try:
        sim = simulator(theta, rng)
    except RuntimeError as exc:
        logger.debug("Simulation failed for theta=%s: %s", theta, exc)
        return np.inf
    return distance(sim[: len(observed)], observed)


def _check_config(cfg):
    if cfg.epsilon <= 0:
        raise ValueError("epsilon must be positive")
    if cfg.n_particles < 1 or cfg.batch_size < 1:
        raise ValueError("n_particles and batch_size must be >= 1")


def _fill_population(parallel, propose, epsilon, cfg, seeds, observed, simulator, distance):
    """Propose and simulate in batches until n_particles fall within epsilon.

    Returns:
        (accepted thetas, their distances, accepted count before truncation,
         number of simulations)
    """
    thetas = [np.empty((0, len(THETA_NAMES)))]
    dists = [np.empty(0)]
    n_accepted = 0
    n_sims = 0
    while n_accepted < cfg.n_particles and n_sims < cfg.max_simulations:
        size = min(cfg.batch_size, cfg.max_simulations - n_sims)
        batch = propose(size)
        child_seeds = seeds.spawn(len(batch))

        d = np.asarray(parallel(
            delayed(_distance_for)(tuple(theta), s, observed, simulator, distance)
            for theta, s in zip(batch, child_seeds)
        ), dtype=float)
        n_sims += len(batch)

        keep = d <= epsilon
        thetas.append(batch[keep])
        dists.append(d[keep])
        n_accepted += int(keep.sum())

        logger.debug("ABC: %d accepted after %d simulations (epsilon=%g)", n_accepted, n_sims, epsilon)

    thetas = np.concatenate(thetas)[: cfg.n_particles]
    dists = np.concatenate(dists)[: cfg.n_particles]
    return thetas, dists, n_accepted, n_sims


def _default_simulator(observed, simulator):
    if simulator is None:
        return partial(ode_simulator, tmax=float(len(observed)))
    return simulator


def abc_rejection(
    observed,
    cfg: Optional[ABCConfig] = None,
    simulator: Optional[Callable] = None,
    distance: Callable = euclidean_distance,
):
    """Rejection sampler; stops at n_particles acceptances or max_simulations draws."""
    if cfg is None:
        cfg = ABCConfig()
    _check_config(cfg)

    observed = np.asarray(observed, dtype=float)
    simulator = _default_simulator(observed, simulator)

    dists = prior_distributions(cfg.priors)
    rng = default_rng(cfg.seed)
    seeds = SeedSequence(cfg.seed)

    def propose(size):
        return np.column_stack([dists[k].rvs(size=size, random_state=rng) for k in THETA_NAMES])

    with Parallel(n_jobs=cfg.n_jobs) as parallel:
        thetas, d, n_accepted, n_sims = _fill_population(
            parallel, propose, cfg.epsilon, cfg, seeds, observed, simulator, distance
        )

    samples = pd.DataFrame(thetas, columns=list(THETA_NAMES))
    samples["distance"] = d
    rate = n_accepted / n_sims if n_sims else 0.0

    if samples.empty:
        logger.warning("ABC accepted no particles in %d simulations (epsilon=%g)", n_sims, cfg.epsilon)
    elif len(samples) < cfg.n_particles:
        logger.warning("ABC stopped at %d of %d particles after %d simulations", len(samples), cfg.n_particles, n_sims)
    else:
        logger.info("ABC: %d particles, acceptance rate %.4f", len(samples), rate)

    return ABCResult(samples=samples, n_simulations=n_sims, acceptance_rate=rate, epsilons=[float(cfg.epsilon)])


def kernel_covariance(thetas, weights) -> np.ndarray:
    """Twice the weighted covariance of the population."""
    cov = np.atleast_2d(np.cov(thetas, rowvar=False, aweights=weights))
    return 2.0 * cov


def importance_weights(new, prev, prev_weights, cov, dists) -> np.ndarray:
    """prior(theta) / sum_j w_j K(theta | theta_j), normalised to sum to one."""
    kernel = stats.multivariate_normal(mean=np.zeros(len(THETA_NAMES)), cov=cov, allow_singular=True)
    diffs = new[:, None, :] - prev[None, :, :]
    denom = kernel.pdf(diffs).reshape(len(new), len(prev)) @ prev_weights
    w = prior_density(new, dists) / denom
    return w / w.sum()


def abc_smc(
    observed,
    cfg: Optional[ABCConfig] = None,
    simulator: Optional[Callable] = None,
    distance: Callable = euclidean_distance,
):
    """ABC sequential Monte Carlo.

    The first population is a rejection sample at cfg.epsilon. Each later
    population uses as epsilon the cfg.quantile of the previous population's
    distances, proposes by resampling the previous particles by weight and
    adding N(0, 2 * weighted covariance) noise, and keeps proposals inside
    the prior support. max_simulations is the budget per population.

    Returns:
        ABCResult for the last complete population; samples carry a
        "weight" column and epsilons lists the schedule that was run.
    """
    if cfg is None:
        cfg = ABCConfig()
    _check_config(cfg)
    if cfg.n_populations < 1:
        raise ValueError("n_populations must be >= 1")
    if not 0.0 < cfg.quantile < 1.0:
        raise ValueError("quantile must lie strictly between 0 and 1")

    observed = np.asarray(observed, dtype=float)
    simulator = _default_simulator(observed, simulator)

    dists = prior_distributions(cfg.priors)
    rng = default_rng(cfg.seed)
    seeds = SeedSequence(cfg.seed)

    def from_prior(size):
        return np.column_stack([dists[k].rvs(size=size, random_state=rng) for k in THETA_NAMES])

    total_sims = 0
    total_accepted = 0
    epsilons = []
    thetas = weights = d = None

    with Parallel(n_jobs=cfg.n_jobs) as parallel:
        for pop in range(cfg.n_populations):
            if pop == 0:
                epsilon = float(cfg.epsilon)
                propose = from_prior
            else:
                epsilon = min(float(np.quantile(d, cfg.quantile)), epsilons[-1])
                cov = kernel_covariance(thetas, weights)
                propose = partial(_perturb, prev=thetas, weights=weights, cov=cov, dists=dists, rng=rng)

            new, new_d, n_accepted, n_sims = _fill_population(
                parallel, propose, epsilon, cfg, seeds, observed, simulator, distance
            )
            total_sims += n_sims
            total_accepted += n_accepted

            if len(new) < cfg.n_particles:
                logger.warning(
                    "ABC SMC population %d reached %d of %d particles within epsilon=%g; stopping",
                    pop, len(new), cfg.n_particles, epsilon,
                )
                break

            if pop == 0:
                new_w = np.full(len(new), 1.0 / len(new))
            else:
                new_w = importance_weights(new, thetas, weights, cov, dists)

            thetas, weights, d = new, new_w, new_d
            epsilons.append(epsilon)
            logger.info("ABC SMC population %d: epsilon=%g after %d simulations", pop, epsilon, n_sims)

    rate = total_accepted / total_sims if total_sims else 0.0
    if thetas is None:
        logger.warning("ABC SMC accepted no complete population in %d simulations (epsilon=%g)",
                       total_sims, cfg.epsilon)
        samples = pd.DataFrame(columns=[*THETA_NAMES, "distance", "weight"], dtype=float)
    else:
        samples = pd.DataFrame(thetas, columns=list(THETA_NAMES))
        samples["distance"] = d
        samples["weight"] = weights

    return ABCResult(samples=samples, n_simulations=total_sims, acceptance_rate=rate, epsilons=epsilons)


def _perturb(size, prev, weights, cov, dists, rng):
    """Resample previous particles by weight and jitter them, keeping prior support."""
    out = np.empty((0, prev.shape[1]))
    while len(out) < size:
        idx = rng.choice(len(prev), size=size, p=weights)
        cand = prev[idx] + rng.multivariate_normal(np.zeros(prev.shape[1]), cov, size=size)
        out = np.vstack([out, cand[prior_density(cand, dists) > 0]])
    return out[:size]
