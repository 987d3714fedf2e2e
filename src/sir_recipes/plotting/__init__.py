from .plots import plot_batch, plot_ensemble, plot_fit, plot_posterior, plot_states  # noqa: F401
