from .montecarlo import propagate, sample_parameters, summarise_ensemble  # noqa: F401
from .probint import probint_ensemble  # noqa: F401
