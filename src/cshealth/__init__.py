"""Top-level package for customer health and lifecycle scoring.

This module provides convenient imports for commonly used functionality
while keeping the main implementation in submodules under ``src/cshealth``.
"""

from . import config, schema, validation, windows, signals, scoring, cohorts, engine  # noqa: F401
from .engine import EngineResult, run_engine  # noqa: F401

__all__ = [
    "config",
    "schema",
    "validation",
    "windows",
    "signals",
    "scoring",
    "cohorts",
    "engine",
    "EngineResult",
    "run_engine",
]
