from .sir import (  # noqa: F401
    DEFAULT_PARAMS,
    DT,
    STATE_NAMES,
    TMAX,
    U0,
    SIRParams,
    as_params,
    check_state,
    initial_state,
    sir_ode,
    sir_rates,
    time_grid,
)
