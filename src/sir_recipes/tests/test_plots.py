import numpy as np
import pandas as pd
import pytest

from sir_recipes.plotting.plots import (
    plot_batch,
    plot_ensemble,
    plot_fit,
    plot_posterior,
    plot_states,
    select_indices,
)
from sir_recipes.simulate.batch_processing import generate_batch, load_batch_csv
from sir_recipes.simulate.ode import solve_ode
from sir_recipes.uncertainty.montecarlo import propagate, summarise_ensemble


def test_plot_states_writes_png(tmp_path):
    out = plot_states(solve_ode(tmax=10.0, dt=1.0), save_path=tmp_path / "figs" / "states.png")
    assert out.exists()
    assert out.stat().st_size > 0


def test_plot_states_missing_column(tmp_path):
    with pytest.raises(ValueError):
        plot_states(pd.DataFrame({"t": [0, 1]}), save_path=tmp_path / "x.png")


def test_plot_ensemble(tmp_path):
    summary = summarise_ensemble(propagate(n_samples=3, tmax=5.0, dt=1.0, seed=0))
    out = plot_ensemble(summary, save_path=tmp_path / "ens.png")
    assert out.exists()

    with pytest.raises(ValueError):
        plot_ensemble(summary, save_path=tmp_path / "bad.png", quantiles=(0.1, 0.9))


def test_plot_batch(tmp_path):
    _, csv_path = generate_batch(N=8, tmax=10.0, dt=1.0, out_path=tmp_path / "b.csv", seed=0)
    df, time_cols = load_batch_csv(csv_path)
    out = plot_batch(df, time_cols, save_path=tmp_path / "batch.png", sample_size=4)
    assert out.exists()


def test_plot_posterior_and_fit(tmp_path):
    rng = np.random.default_rng(0)
    samples = pd.DataFrame({"i0": rng.uniform(0, 0.1, 50), "beta": rng.uniform(0.01, 0.1, 50)})
    out = plot_posterior(samples, save_path=tmp_path / "post.png", truth={"i0": 0.01, "beta": 0.05})
    assert out.exists()

    obs = pd.DataFrame({"day": [1, 2, 3], "cases": [4, 6, 9]})
    out = plot_fit(obs, np.array([4.5, 6.2, 8.8]), save_path=tmp_path / "fit.png")
    assert out.exists()
    with pytest.raises(ValueError):
        plot_fit(obs, np.array([1.0]), save_path=tmp_path / "bad.png")


def test_select_indices():
    assert np.array_equal(select_indices(5, None), np.arange(5))
    idx = select_indices(100, 10, random_seed=1)
    assert len(idx) == 10
    assert np.all(np.diff(idx) > 0)


def test_plot_posterior_skips_sampler_columns(tmp_path):
    rng = np.random.default_rng(1)
    samples = pd.DataFrame({
        "i0": rng.uniform(0, 0.1, 30),
        "beta": rng.uniform(0.01, 0.1, 30),
        "distance": rng.uniform(0, 10, 30),
        "weight": np.full(30, 1 / 30),
    })
    fig_path = plot_posterior(samples, save_path=tmp_path / "weighted.png")
    assert fig_path.exists()
