import numpy as np
import pytest

from sir_recipes.simulate.ode import solve_ode
from sir_recipes.simulate.sde import sde_ensemble, simulate_sde


def test_path_conserves_population_and_stays_non_negative():
    df = simulate_sde(rng=np.random.default_rng(1))
    arr = df[["S", "I", "R", "C"]].to_numpy()

    assert list(df.columns) == ["t", "S", "I", "R", "C"]
    assert df["t"].iloc[-1] == pytest.approx(40.0)
    assert np.all(arr >= 0)
    assert np.allclose(arr[:, :3].sum(axis=1), 1000.0)
    assert np.allclose(arr[:, 0] + arr[:, 3], 990.0)
    assert np.all(np.diff(df["C"].to_numpy()) >= 0)


def test_same_seed_same_path():
    a = simulate_sde(tmax=10.0, rng=np.random.default_rng(7))
    b = simulate_sde(tmax=10.0, rng=np.random.default_rng(7))
    assert a.equals(b)


def test_ensemble_mean_follows_ode():
    ens = sde_ensemble(tmax=20.0, dt=0.1, n_trajectories=200, seed=3)
    mean_I = ens.groupby("t")["I"].mean().to_numpy()
    ode_I = solve_ode(tmax=20.0, dt=0.1)["I"].to_numpy()

    assert ens["trajectory"].nunique() == 200
    # demographic noise of a population of 1000 keeps the mean close to the ODE
    assert np.max(np.abs(mean_I - ode_I)) < 0.25 * ode_I.max()


def test_no_transmission_only_recovers():
    df = simulate_sde(p=(0.0, 10.0, 0.25), rng=np.random.default_rng(0))
    assert np.all(df["C"] == 0.0)
    assert df["I"].iloc[-1] < 10.0


def test_ensemble_size_validated():
    with pytest.raises(ValueError):
        sde_ensemble(n_trajectories=0)
