from .ode import daily_incidence, solve_ode, summarise_trajectory  # noqa: F401
from .jump import resample_to_grid, simulate_jump, simulate_jump_grid  # noqa: F401
from .discrete import function_map, markov_chain  # noqa: F401
from .sde import sde_ensemble, simulate_sde  # noqa: F401
