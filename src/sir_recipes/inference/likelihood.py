# src/sir_recipes/inference/likelihood.py
# Likelihood of daily case counts under the SIR ODE.
#
# Inference works on theta = (i0, beta): the fraction initially infected and
# the per-contact infection probability. Population size, contact rate and
# recovery rate are held fixed.

import numpy as np
from scipy.stats import poisson

from ..model.sir import CONTACT_RATE, GAMMA, TMAX, initial_state
from ..simulate.ode import daily_incidence, solve_ode

N_POP = 1000.0
THETA_NAMES = ("i0", "beta")


def model_incidence(theta, N=N_POP, c=CONTACT_RATE, gamma=GAMMA, tmax=TMAX, rtol=1e-6, atol=1e-6):
    """Daily incidence predicted for theta = (i0, beta)."""
    i0, beta = theta
    u0 = initial_state(N, i0)
    df = solve_ode(u0=u0, p=(beta, c, gamma), tmax=tmax, dt=1.0, rtol=rtol, atol=atol)
    return daily_incidence(df)["incidence"].to_numpy(dtype=float)


def poisson_loglik(theta, cases, N=N_POP, c=CONTACT_RATE, gamma=GAMMA, tmax=None):
    """Poisson log-likelihood of the observed daily cases.

    Returns -inf for parameters outside the model's domain, when the solver
    fails, or when any predicted count is non-positive.
    """
    cases = np.asarray(cases)
    if tmax is None:
        tmax = float(len(cases))

    i0, beta = theta
    if not 0.0 < i0 < 1.0 or beta < 0.0:
        return -np.inf
    try:
        lam = model_incidence(theta, N=N, c=c, gamma=gamma, tmax=tmax)
    except RuntimeError:
        return -np.inf

    lam = lam[: len(cases)]
    if lam.size < len(cases) or np.any(lam <= 0.0):
        return -np.inf
    return float(np.sum(poisson.logpmf(cases, lam)))
