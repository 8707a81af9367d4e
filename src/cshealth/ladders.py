"""Threshold ladders: ordered rule tables evaluated top-to-bottom, first match wins.

Every dimension score and category label in the engine is produced by a
:class:`ThresholdLadder`. A ladder is a list of ``(label, predicate, value)``
rules applied to a DataFrame of metrics. Evaluation is a single
``numpy.select`` traversal, so the first matching rule wins and rows that match
nothing receive the ladder default.

Undefined metrics are ``NaN``. Comparisons against ``NaN`` evaluate to False,
so a ladder never matches an undefined value by accident; ladders that need to
treat undefined specially carry an explicit :func:`missing` rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

import numpy as np
import pandas as pd

Predicate = Callable[[pd.DataFrame], pd.Series]


@dataclass(frozen=True)
class Rule:
    label: str
    predicate: Predicate
    value: Any


@dataclass(frozen=True)
class ThresholdLadder:
    """Ordered rule table with a fallback value."""

    name: str
    rules: tuple[Rule, ...]
    default: Any = 0

    def conditions(self, frame: pd.DataFrame) -> list[np.ndarray]:
        out = []
        for rule in self.rules:
            mask = rule.predicate(frame)
            out.append(np.asarray(pd.Series(mask, index=frame.index).fillna(False), dtype=bool))
        return out

    def evaluate(self, frame: pd.DataFrame) -> pd.Series:
        """Return the value of the first matching rule for every row."""

        if frame.empty:
            return pd.Series([], index=frame.index, dtype=object if self._is_text() else float, name=self.name)
        if not self.rules:
            return pd.Series(self.default, index=frame.index, name=self.name)
        values = [rule.value for rule in self.rules]
        result = np.select(self.conditions(frame), values, default=self.default)
        series = pd.Series(result, index=frame.index, name=self.name)
        if self._is_text():
            return series.astype(object)
        return pd.to_numeric(series, errors="coerce")

    def _is_text(self) -> bool:
        candidates = [rule.value for rule in self.rules] + [self.default]
        return any(isinstance(v, str) for v in candidates if v is not None)


def ladder(name: str, rules: Iterable[tuple[str, Predicate, Any]], default: Any = 0) -> ThresholdLadder:
    return ThresholdLadder(name=name, rules=tuple(Rule(*r) for r in rules), default=default)


# ---------------------------------------------------------------------------
# Predicate builders
# ---------------------------------------------------------------------------

def col(frame: pd.DataFrame, name: str) -> pd.Series:
    if name not in frame.columns:
        raise KeyError(f"Ladder input column '{name}' is missing")
    return pd.to_numeric(frame[name], errors="coerce")


def missing(name: str) -> Predicate:
    return lambda f: col(f, name).isna()


def present(name: str) -> Predicate:
    return lambda f: col(f, name).notna()


def gte(name: str, threshold: float) -> Predicate:
    return lambda f: col(f, name) >= threshold


def gt(name: str, threshold: float) -> Predicate:
    return lambda f: col(f, name) > threshold


def lt(name: str, threshold: float) -> Predicate:
    return lambda f: col(f, name) < threshold


def lte(name: str, threshold: float) -> Predicate:
    return lambda f: col(f, name) <= threshold


def eq(name: str, value: float) -> Predicate:
    return lambda f: col(f, name) == value


def below_ratio(name: str, reference: str, ratio: float) -> Predicate:
    """``name < reference * ratio``; never matches when either side is undefined."""
    return lambda f: col(f, name) < col(f, reference) * ratio


def above_ratio(name: str, reference: str, ratio: float) -> Predicate:
    return lambda f: col(f, name) > col(f, reference) * ratio


def below_offset(name: str, reference: str, offset: float) -> Predicate:
    """``name < reference - offset``."""
    return lambda f: col(f, name) < col(f, reference) - offset


def all_of(*predicates: Predicate) -> Predicate:
    def _check(f: pd.DataFrame) -> pd.Series:
        mask = pd.Series(True, index=f.index)
        for pred in predicates:
            mask &= pd.Series(pred(f), index=f.index).fillna(False).astype(bool)
        return mask

    return _check


def is_value(name: str, value: str) -> Predicate:
    return lambda f: f[name].astype(str) == value


# ---------------------------------------------------------------------------
# Classification bands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Band:
    lower: float | None  # None marks the catch-all bottom band
    label: str
    action: str | None = None


@dataclass(frozen=True)
class BandTable:
    """Descending lower bounds with a terminal catch-all.

    ``lower`` values are inclusive, so the table partitions the real line into
    closed-below intervals with no gaps or overlaps.
    """

    name: str
    bands: tuple[Band, ...]
    undefined: Band | None = None

    def __post_init__(self) -> None:
        if not self.bands or self.bands[-1].lower is not None:
            raise ValueError(f"Band table '{self.name}' must end with a catch-all band")
        bounds = [b.lower for b in self.bands[:-1]]
        if any(b is None for b in bounds):
            raise ValueError(f"Band table '{self.name}' has a catch-all band before the end")
        if bounds != sorted(bounds, reverse=True) or len(set(bounds)) != len(bounds):
            raise ValueError(f"Band table '{self.name}' lower bounds must be strictly descending")

    def _ladder(self, column: str, attr: str) -> ThresholdLadder:
        # An undefined score is never folded into the catch-all band.
        undefined_value = getattr(self.undefined, attr) if self.undefined is not None else None
        rules: list[tuple[str, Predicate, Any]] = [("undefined", missing(column), undefined_value)]
        for band in self.bands[:-1]:
            rules.append((band.label, gte(column, band.lower), getattr(band, attr)))
        return ladder(f"{self.name}_{attr}", rules, default=getattr(self.bands[-1], attr))

    def label_for(self, frame: pd.DataFrame, column: str) -> pd.Series:
        return self._ladder(column, "label").evaluate(frame)

    def action_for(self, frame: pd.DataFrame, column: str) -> pd.Series:
        return self._ladder(column, "action").evaluate(frame)

    def labels(self) -> list[str]:
        return [b.label for b in self.bands]


def band_table(name: str, rows: Sequence[tuple[float | None, str, str | None]], undefined: tuple[str, str | None] | None = None) -> BandTable:
    return BandTable(
        name=name,
        bands=tuple(Band(lower, label, action) for lower, label, action in rows),
        undefined=Band(None, *undefined) if undefined else None,
    )
