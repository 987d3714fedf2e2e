import numpy as np
import pytest
from scipy import stats

from sir_recipes.uncertainty.montecarlo import (
    default_distributions,
    propagate,
    sample_parameters,
    summarise_ensemble,
    uniform_around,
)


def test_sample_parameters_mixes_fixed_and_random():
    dists = {"beta": stats.uniform(loc=0.04, scale=0.02), "c": 10.0, "gamma": 0.25}
    draws = sample_parameters(dists, 200, rng=np.random.default_rng(0))

    assert list(draws.columns) == ["beta", "c", "gamma"]
    assert len(draws) == 200
    assert np.all(draws["c"] == 10.0)
    assert np.all(draws["gamma"] == 0.25)
    assert draws["beta"].between(0.04, 0.06).all()
    assert draws["beta"].std() > 0


def test_sample_parameters_validation():
    with pytest.raises(ValueError):
        sample_parameters({"beta": 0.05, "c": 10.0}, 10)
    with pytest.raises(ValueError):
        sample_parameters(default_distributions(), 0)
    with pytest.raises(ValueError):
        sample_parameters({"beta": stats.norm(loc=-1.0), "c": 10.0, "gamma": 0.25}, 10)


def test_uniform_around_bounds():
    dists = uniform_around((0.05, 10.0, 0.25), spread=0.2)
    assert dists["c"] == 10.0
    assert dists["beta"].support() == pytest.approx((0.04, 0.06))
    assert dists["gamma"].support() == pytest.approx((0.2, 0.3))
    with pytest.raises(ValueError):
        uniform_around((0.05, 10.0, 0.25), spread=1.5)


def test_propagate_attaches_draws():
    ens = propagate(n_samples=5, tmax=10.0, dt=1.0, seed=1)
    assert len(ens) == 5 * 11
    assert set(ens["trajectory"]) == set(range(5))
    for col in ("t", "S", "I", "R", "C", "beta", "c", "gamma"):
        assert col in ens.columns

    # One parameter set per trajectory
    per_traj = ens.groupby("trajectory")["beta"].nunique()
    assert np.all(per_traj == 1)


def test_propagate_is_reproducible():
    a = propagate(n_samples=3, tmax=5.0, dt=1.0, seed=7)
    b = propagate(n_samples=3, tmax=5.0, dt=1.0, seed=7)
    assert a.equals(b)


def test_no_uncertainty_collapses_band():
    dists = uniform_around((0.05, 10.0, 0.25), spread=0.0)
    ens = propagate(distributions=dists, n_samples=4, tmax=10.0, dt=1.0, seed=3)
    summary = summarise_ensemble(ens, quantiles=(0.05, 0.95))

    assert list(summary.columns) == ["t", "compartment", "mean", "q0.05", "q0.95"]
    assert len(summary) == 11 * 4
    assert np.allclose(summary["q0.05"], summary["mean"])
    assert np.allclose(summary["q0.95"], summary["mean"])


def test_band_widens_with_uncertainty():
    ens = propagate(n_samples=20, tmax=20.0, dt=1.0, seed=5)
    summary = summarise_ensemble(ens)
    I = summary[summary["compartment"] == "I"]
    width = (I["q0.95"] - I["q0.05"]).to_numpy()
    assert width[0] == pytest.approx(0.0)
    assert width[-1] > 0.0


def test_summarise_empty_raises():
    ens = propagate(n_samples=2, tmax=2.0, dt=1.0, seed=0)
    with pytest.raises(ValueError):
        summarise_ensemble(ens.iloc[0:0])
