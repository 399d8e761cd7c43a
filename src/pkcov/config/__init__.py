"""Configuration models, loading and validation.

Models and helpers are imported on first attribute access so that
``pkcov.config.constants`` can be used without pulling in pydantic.
"""

from importlib import import_module
from typing import Any, Dict, List

from . import constants
from .constants import *  # noqa: F401,F403

_MODELS = (
    "AppConfig",
    "RunConfig",
    "PKParamsConfig",
    "DoseConfig",
    "TimeGridConfig",
    "VariabilityConfig",
    "SamplingConfig",
    "AnalysisConfig",
    "SolverConfig",
)

_LAZY: Dict[str, str] = {
    **{name: ".model" for name in _MODELS},
    "load_config": ".load",
    "default_config": ".load",
    "validate_config": ".validation",
}

__all__ = sorted({"constants", *(n for n in dir(constants) if n.isupper()), *_LAZY})


def __getattr__(name: str) -> Any:
    if name not in _LAZY:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(import_module(_LAZY[name], __name__), name)
    globals()[name] = value
    return value


def __dir__() -> List[str]:
    return list(__all__)
