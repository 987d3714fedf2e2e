from .data import load_observations, save_observations, simulate_observations  # noqa: F401
from .likelihood import model_incidence, poisson_loglik  # noqa: F401
from .fit import FitResult, fit_least_squares  # noqa: F401
from .abc import ABCConfig, ABCResult, abc_rejection, abc_smc  # noqa: F401
from .nested import NestedConfig, NestedResult, run_nested  # noqa: F401
from .mcmc import MCMCConfig, MCMCResult, run_mcmc  # noqa: F401
