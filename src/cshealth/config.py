"""Configuration management for customer health scoring."""
from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

# Default paths
ROOT = Path(__file__).resolve().parents[2]
CONFIG_PATH = ROOT / "config.toml"


@dataclass(frozen=True)
class WindowConfig:
    """Lookback lengths used by the activity window aggregator."""

    current_weeks: int = 4
    recent_days: int = 30
    trend_weeks: int = 12
    rolling_weeks: int = 4
    consistency_weeks: int = 8

    def longest_days(self) -> int:
        """Days of history needed to serve every window."""
        return max(
            7 * self.current_weeks * 2,
            self.recent_days * 2,
            7 * self.trend_weeks,
            7 * self.consistency_weeks,
        )


@dataclass(frozen=True)
class HealthWeights:
    """Weights combining the three health dimensions into the overall score."""

    usage: float = 0.40
    support: float = 0.30
    engagement: float = 0.30

    def weight_dict(self) -> Dict[str, float]:
        return {"usage": self.usage, "support": self.support, "engagement": self.engagement}


@dataclass(frozen=True)
class OutputLimits:
    per_customer: int = 100
    cohorts: int = 24
    min_cohort_size: int = 5


@dataclass(frozen=True)
class EngineConfig:
    windows: WindowConfig = field(default_factory=WindowConfig)
    health_weights: HealthWeights = field(default_factory=HealthWeights)
    limits: OutputLimits = field(default_factory=OutputLimits)

    def __post_init__(self) -> None:
        for name, value in self.health_weights.weight_dict().items():
            if value < 0:
                raise ValueError(f"Health weight '{name}' must be non-negative, got {value}")
        for item in fields(self.windows):
            if getattr(self.windows, item.name) <= 0:
                raise ValueError(f"Window '{item.name}' must be positive")
        for item in fields(self.limits):
            if getattr(self.limits, item.name) <= 0:
                raise ValueError(f"Limit '{item.name}' must be positive")


_SECTIONS = {
    "windows": WindowConfig,
    "health_weights": HealthWeights,
    "limits": OutputLimits,
}


def config_from_mapping(data: Mapping[str, Any], base: EngineConfig | None = None) -> EngineConfig:
    """Build an :class:`EngineConfig` from nested mapping data, rejecting unknown keys."""

    base = base or EngineConfig()
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown config section(s): {', '.join(unknown)}. Available: {', '.join(_SECTIONS)}")

    updates: Dict[str, Any] = {}
    for section, cls in _SECTIONS.items():
        values = data.get(section)
        if not values:
            continue
        allowed = {f.name for f in fields(cls)}
        bad = sorted(set(values) - allowed)
        if bad:
            raise ValueError(f"Unknown option(s) in [{section}]: {', '.join(bad)}")
        updates[section] = replace(getattr(base, section), **dict(values))
    return replace(base, **updates)


def load_config(path: Path = CONFIG_PATH) -> EngineConfig:
    """Loads configuration from a TOML file, falling back to defaults if absent."""
    path = Path(path)
    if not path.exists():
        return EngineConfig()

    with path.open("rb") as f:
        data = tomllib.load(f)
    print(f"[INFO] Loaded engine configuration from {path}")
    return config_from_mapping(data)
