import numpy as np
import pytest

from sir_recipes.simulate.discrete import function_map, markov_chain, step_probabilities
from sir_recipes.simulate.ode import solve_ode


def test_step_probabilities():
    ifrac, rfrac = step_probabilities([990, 10, 0, 0], (0.05, 10.0, 0.25), 0.1)
    assert ifrac == pytest.approx(1 - np.exp(-0.05 * 10.0 * 10 / 1000 * 0.1))
    assert rfrac == pytest.approx(1 - np.exp(-0.25 * 0.1))


def test_function_map_conserves_population():
    df = function_map()
    assert len(df) == 401
    assert np.allclose(df["S"] + df["I"] + df["R"], 1000.0)
    assert np.allclose(df["S"] + df["C"], 990.0)


def test_function_map_approaches_ode_for_small_steps():
    fmap = function_map(tmax=20.0, dt=0.01)
    ode = solve_ode(tmax=20.0, dt=0.01)
    assert np.allclose(fmap["I"], ode["I"], rtol=0.02, atol=0.5)


def test_markov_chain_integer_and_conserved():
    df = markov_chain(rng=np.random.default_rng(11))
    arr = df[["S", "I", "R", "C"]].to_numpy()
    assert np.all(arr == np.round(arr))
    assert np.all(arr >= 0)
    assert np.all(arr[:, :3].sum(axis=1) == 1000)
    assert np.all(np.diff(arr[:, 3]) >= 0)


def test_markov_chain_without_transmission():
    df = markov_chain(p=(0.0, 10.0, 0.25), rng=np.random.default_rng(12))
    assert np.all(df["C"] == 0)
    assert np.all(np.diff(df["I"].to_numpy()) <= 0)


def test_markov_chain_needs_integer_state():
    with pytest.raises(ValueError):
        markov_chain(u0=[990.5, 9.5, 0, 0])


def test_uneven_last_step_ends_at_tmax():
    det = function_map(tmax=11.0, dt=3.0)
    stoch = markov_chain(tmax=11.0, dt=3.0, rng=np.random.default_rng(2))
    for df in (det, stoch):
        assert df["t"].iloc[-1] == pytest.approx(11.0)
        assert len(df) == 5
    # the short final step moves fewer people than a full one would
    full = function_map(tmax=12.0, dt=3.0)
    assert det["R"].iloc[-1] < full["R"].iloc[-1]
