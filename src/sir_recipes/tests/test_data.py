import numpy as np
import pandas as pd
import pytest

from sir_recipes.inference.data import load_observations, save_observations, simulate_observations


def test_simulated_observations():
    obs = simulate_observations(rng=np.random.default_rng(1234))
    assert list(obs.columns) == ["day", "cases"]
    assert obs["day"].tolist() == list(range(1, 41))
    assert np.all(obs["cases"] >= 0)
    assert obs["cases"].sum() > 0


def test_save_and_load(tmp_path):
    obs = simulate_observations(rng=np.random.default_rng(1))
    path = save_observations(obs, tmp_path / "sub" / "obs.csv")
    assert path.exists()

    loaded = load_observations(path)
    assert loaded["cases"].tolist() == obs["cases"].tolist()


def test_load_sorts_by_day(tmp_path):
    path = tmp_path / "obs.csv"
    pd.DataFrame({"day": [3, 1, 2], "cases": [30, 10, 20]}).to_csv(path, index=False)
    loaded = load_observations(path)
    assert loaded["cases"].tolist() == [10, 20, 30]


def test_load_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_observations(tmp_path / "missing.csv")

    bad = tmp_path / "bad.csv"
    pd.DataFrame({"day": [1, 2]}).to_csv(bad, index=False)
    with pytest.raises(ValueError):
        load_observations(bad)
