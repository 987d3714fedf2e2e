"""SIR model recipes: ODEs, jump processes, uncertainty propagation and inference."""

from .version_info import VERSION as __version__  # noqa: F401
