import logging

import numpy as np
import pytest

from sir_recipes.inference.abc import (
    ABCConfig,
    abc_rejection,
    abc_smc,
    importance_weights,
    kernel_covariance,
    euclidean_distance,
    markov_simulator,
    ode_simulator,
    prior_distributions,
)
from sir_recipes.inference.likelihood import model_incidence


@pytest.fixture(scope="module")
def observed():
    return model_incidence((0.01, 0.05), tmax=40.0)


def test_euclidean_distance():
    assert euclidean_distance([0, 0], [3, 4]) == pytest.approx(5.0)
    with pytest.raises(ValueError):
        euclidean_distance([0, 0], [1, 2, 3])


def test_simulators_return_daily_incidence():
    inc = ode_simulator((0.01, 0.05), tmax=40.0)
    assert inc.shape == (40,)

    stoch = markov_simulator((0.01, 0.05), rng=np.random.default_rng(0), tmax=40.0)
    assert stoch.shape == (40,)
    assert np.all(stoch >= 0)
    assert np.all(stoch == np.round(stoch))


def test_prior_distributions():
    dists = prior_distributions({"i0": (0.001, 0.1), "beta": (0.01, 0.1)})
    assert dists["beta"].support() == pytest.approx((0.01, 0.1))
    with pytest.raises(ValueError):
        prior_distributions({"i0": (0.001, 0.1)})


def test_rejection_accepts_within_epsilon(observed):
    cfg = ABCConfig(
        priors={"i0": (0.005, 0.02), "beta": (0.04, 0.06)},
        epsilon=60.0,
        n_particles=20,
        max_simulations=2000,
        batch_size=200,
        seed=3,
    )
    res = abc_rejection(observed, cfg)

    assert list(res.samples.columns) == ["i0", "beta", "distance"]
    assert 0 < len(res.samples) <= 20
    assert np.all(res.samples["distance"] <= 60.0)
    assert res.samples["beta"].between(0.04, 0.06).all()
    assert res.n_simulations <= 2000
    assert res.acceptance_rate >= len(res.samples) / res.n_simulations
    assert res.epsilons == [60.0]


def test_nothing_accepted_returns_empty_sample(caplog):
    cfg = ABCConfig(epsilon=1e-9, n_particles=5, max_simulations=30, batch_size=10, seed=0)
    with caplog.at_level(logging.WARNING, logger="sir_recipes.inference.abc"):
        res = abc_rejection(np.zeros(40), cfg)
    assert "accepted no particles" in caplog.text
    assert res.samples.empty
    assert res.n_simulations == 30
    assert res.acceptance_rate == 0.0


def test_parallel_matches_serial(observed):
    """Per-draw seeds make results independent of the number of workers."""
    kwargs = dict(epsilon=100.0, n_particles=5, max_simulations=40, batch_size=20, seed=11)
    serial = abc_rejection(observed, ABCConfig(n_jobs=1, **kwargs))
    parallel = abc_rejection(observed, ABCConfig(n_jobs=2, **kwargs))
    assert serial.samples.equals(parallel.samples)
    assert serial.n_simulations == parallel.n_simulations


def test_invalid_config():
    with pytest.raises(ValueError):
        abc_rejection(np.zeros(40), ABCConfig(epsilon=0.0))
    with pytest.raises(ValueError):
        abc_rejection(np.zeros(40), ABCConfig(n_particles=0))


def test_acceptance_rate_counts_every_accepted_draw():
    """All draws of a full batch are accepted, even if only n_particles are kept."""
    cfg = ABCConfig(epsilon=1e9, n_particles=5, max_simulations=100, batch_size=100, seed=0)
    res = abc_rejection(np.zeros(40), cfg)
    assert len(res.samples) == 5
    assert res.n_simulations == 100
    assert res.acceptance_rate == pytest.approx(1.0)


def test_failed_simulation_counts_as_rejected():
    def flaky(theta, rng):
        if theta[1] > 0.05:
            raise RuntimeError("solver failed")
        return np.zeros(40)

    cfg = ABCConfig(epsilon=1.0, n_particles=1000, max_simulations=50, batch_size=25, seed=4)
    res = abc_rejection(np.zeros(40), cfg, simulator=flaky)
    assert res.n_simulations == 50
    assert 0 < len(res.samples) < 50
    assert (res.samples["beta"] <= 0.05).all()


def test_kernel_covariance_is_twice_weighted_covariance():
    thetas = np.array([[0.0, 0.0], [1.0, 2.0], [2.0, 4.0]])
    w = np.full(3, 1 / 3)
    cov = kernel_covariance(thetas, w)
    assert cov == pytest.approx(2.0 * np.cov(thetas, rowvar=False))


def test_importance_weights_normalised():
    dists = prior_distributions({"i0": (0.0, 1.0), "beta": (0.0, 1.0)})
    prev = np.array([[0.2, 0.2], [0.8, 0.8]])
    new = np.array([[0.2, 0.2], [0.5, 0.5], [0.8, 0.8]])
    w = importance_weights(new, prev, np.array([0.5, 0.5]), 0.01 * np.eye(2), dists)
    assert w.sum() == pytest.approx(1.0)
    # far from both parents means little kernel mass, hence a larger weight
    assert w[1] > w[0]
    assert w[0] == pytest.approx(w[2])


@pytest.fixture(scope="module")
def smc_run(observed):
    cfg = ABCConfig(epsilon=300.0, n_particles=60, n_populations=3, quantile=0.5,
                    max_simulations=6000, batch_size=120, seed=5)
    return cfg, abc_smc(observed, cfg)


def test_smc_epsilon_shrinks(smc_run):
    cfg, res = smc_run
    assert len(res.epsilons) == 3
    assert res.epsilons[0] == 300.0
    assert all(b < a for a, b in zip(res.epsilons, res.epsilons[1:]))
    assert (res.samples["distance"] <= res.epsilons[-1]).all()


def test_smc_weights_sum_to_one(smc_run):
    cfg, res = smc_run
    assert list(res.samples.columns) == ["i0", "beta", "distance", "weight"]
    assert len(res.samples) == cfg.n_particles
    assert res.samples["weight"].sum() == pytest.approx(1.0)
    assert (res.samples["weight"] > 0).all()


def test_smc_tighter_than_rejection_at_first_epsilon(observed, smc_run):
    cfg, res = smc_run
    first = abc_rejection(observed, ABCConfig(epsilon=cfg.epsilon, n_particles=cfg.n_particles,
                                              max_simulations=cfg.max_simulations,
                                              batch_size=cfg.batch_size, seed=cfg.seed))
    assert res.samples["beta"].std() < first.samples["beta"].std()
    assert res.samples["beta"].mean() == pytest.approx(0.05, abs=0.015)


def test_smc_invalid_config():
    with pytest.raises(ValueError):
        abc_smc(np.zeros(40), ABCConfig(n_populations=0))
    with pytest.raises(ValueError):
        abc_smc(np.zeros(40), ABCConfig(quantile=1.0))
