# src/sir_recipes/inference/fit.py
# Point estimate of theta = (i0, beta) by least squares on daily incidence.

import logging
from dataclasses import dataclass

import numpy as np
from scipy.optimize import least_squares

from ..model.sir import CONTACT_RATE, GAMMA
from .likelihood import N_POP, model_incidence

logger = logging.getLogger(__name__)


@dataclass
class FitResult:
    i0: float
    beta: float
    cost: float
    rmse: float
    success: bool


def fit_least_squares(
    cases,
    x0=(0.02, 0.03),
    bounds=((1e-4, 1e-4), (0.5, 0.5)),
    N=N_POP,
    c=CONTACT_RATE,
    gamma=GAMMA,
    tmax=None,
):
    """Fit (i0, beta) so the ODE incidence matches the observed cases.

    tmax defaults to one day per observation; a longer horizon is allowed,
    only the first len(cases) days enter the residuals.
    """
    y = np.asarray(cases, dtype=float)
    if y.size == 0:
        raise ValueError("No observations")
    if tmax is None:
        tmax = float(y.size)
    elif tmax < y.size:
        raise ValueError(f"tmax={tmax:g} is shorter than the {y.size} observed days")

    def residuals(theta):
        return model_incidence(theta, N=N, c=c, gamma=gamma, tmax=tmax)[: y.size] - y

    res = least_squares(residuals, np.asarray(x0, dtype=float), bounds=bounds)
    if not res.success:
        logger.warning("least_squares did not converge: %s", res.message)

    rmse = float(np.sqrt(np.mean(res.fun ** 2)))
    i0_fit, beta_fit = (float(v) for v in res.x)
    logger.info("Fitted i0=%.4f beta=%.4f (RMSE %.3f)", i0_fit, beta_fit, rmse)
    return FitResult(i0=i0_fit, beta=beta_fit, cost=float(res.cost), rmse=rmse, success=bool(res.success))
