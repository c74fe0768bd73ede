"""Application package exports."""

from .app import APP_VERSION, create_app
from . import infrastructure, processing
from .processing import apply_duotone, plan_dimensions

__version__ = APP_VERSION

__all__ = [
    "APP_VERSION",
    "__version__",
    "create_app",
    "infrastructure",
    "processing",
    "apply_duotone",
    "plan_dimensions",
]
