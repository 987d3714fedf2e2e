# src/sir_recipes/model/sir.py
# The SIR model shared by every recipe.
# State u = (S, I, R, C), where C counts cumulative infections.
# Parameters p = (beta, c, gamma): infection probability per contact,
# contact rate and recovery rate.

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

# Textbook defaults
TMAX = 40.0
DT = 0.1
U0 = (990.0, 10.0, 0.0, 0.0)
BETA = 0.05
CONTACT_RATE = 10.0
GAMMA = 0.25

STATE_NAMES = ("S", "I", "R", "C")


@dataclass
class SIRParams:
    beta: float = BETA
    c: float = CONTACT_RATE
    gamma: float = GAMMA

    def __post_init__(self):
        if self.beta < 0 or self.c < 0 or self.gamma < 0:
            raise ValueError("beta, c and gamma must be non-negative")

    def as_tuple(self) -> Tuple[float, float, float]:
        return (float(self.beta), float(self.c), float(self.gamma))

    def r0(self) -> float:
        """Basic reproduction number c * beta / gamma."""
        if self.gamma == 0:
            return float("inf")
        return self.beta * self.c / self.gamma


DEFAULT_PARAMS = SIRParams()


def as_params(p) -> Tuple[float, float, float]:
    """Accept SIRParams or any length-3 sequence and return a plain tuple."""
    if isinstance(p, SIRParams):
        return p.as_tuple()
    vals = tuple(float(x) for x in p)
    if len(vals) != 3:
        raise ValueError("Parameters must be (beta, c, gamma)")
    return vals


def check_state(u0: Sequence[float]) -> np.ndarray:
    """Validate an (S, I, R, C) vector and return it as a float array."""
    u = np.asarray(u0, dtype=float)
    if u.shape != (4,):
        raise ValueError("State must have four entries (S, I, R, C)")
    if np.any(u < 0):
        raise ValueError("State entries must be non-negative")
    if u[:3].sum() <= 0:
        raise ValueError("Population S + I + R must be positive")
    return u


def initial_state(N: float, i0: float) -> np.ndarray:
    """Split a population of size N with a fraction i0 initially infected."""
    if N <= 0:
        raise ValueError("N must be positive")
    if not 0.0 < i0 < 1.0:
        raise ValueError("i0 must lie strictly between 0 and 1")
    return np.array([N * (1.0 - i0), N * i0, 0.0, 0.0])


def sir_ode(t, u, p):
    """Right-hand side of the SIR ODE, in the (t, y, *args) form solve_ivp expects."""
    S, I, R, C = u
    beta, c, gamma = p
    N = S + I + R
    infection = beta * c * I / N * S
    recovery = gamma * I
    return [-infection, infection - recovery, recovery, infection]


def sir_rates(u, p) -> Tuple[float, float]:
    """Propensities of the infection and recovery reactions."""
    S, I, R, _ = u
    beta, c, gamma = p
    N = S + I + R
    if N <= 0:
        return 0.0, 0.0
    return beta * c * I / N * S, gamma * I


def time_grid(tmax: float, dt: float) -> np.ndarray:
    """Grid 0, dt, 2*dt, ... ending exactly at tmax.

    When tmax is not a multiple of dt the last step is shorter than dt.
    """
    if tmax <= 0:
        raise ValueError("tmax must be positive")
    if dt <= 0:
        raise ValueError("dt must be positive")
    n = int(np.floor(tmax / dt + 1e-9))
    grid = np.arange(n + 1) * dt
    if tmax - grid[-1] > 1e-9 * max(1.0, tmax):
        grid = np.append(grid, float(tmax))
    else:
        grid[-1] = float(tmax)
    return grid
