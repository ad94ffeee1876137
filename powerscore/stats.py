"""Sample-set reduction: median, coefficient of variation and aggregates."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from .models import Aggregate, SampleSet


class NoSamplesError(ValueError):
    """Raised when a statistic is requested for a probe that was never measured."""


def median(values: Sequence[float]) -> float:
    """Return the standard median; even lengths average the two central values."""
    if not values:
        raise NoSamplesError("median requires at least one observation")
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[middle])
    return (ordered[middle - 1] + ordered[middle]) / 2.0


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Return sample stdev / mean * 100, or 0 for fewer than two values or a zero mean."""
    count = len(values)
    if count < 2:
        return 0.0
    mean = sum(values) / count
    if mean == 0:
        return 0.0
    variance = sum((value - mean) ** 2 for value in values) / (count - 1)
    return math.sqrt(variance) / mean * 100.0


def _effective_values(sample_set: SampleSet, exclude_failed: bool) -> list[float]:
    values = list(sample_set.values)
    if exclude_failed and sample_set.failures:
        measured = [value for value in values if value > 0]
        if measured:
            return measured
    return values


def aggregate(sample_set: SampleSet, *, exclude_failed: bool = False) -> Aggregate:
    """Reduce a sample set to its median, CV% and range."""
    if not sample_set.values:
        raise NoSamplesError(f"Probe {sample_set.probe} has no observations")
    values = _effective_values(sample_set, exclude_failed)
    return Aggregate(
        median=median(values),
        cv_pct=coefficient_of_variation(values),
        minimum=min(values),
        maximum=max(values),
        count=len(values),
        failures=sample_set.failures,
    )


def pool(probe: str, sample_sets: Iterable[SampleSet]) -> SampleSet:
    """Concatenate several sample sets into one under a new probe name."""
    values: list[float] = []
    failures = 0
    for sample_set in sample_sets:
        values.extend(sample_set.values)
        failures += sample_set.failures
    return SampleSet(probe=probe, values=values, failures=failures)


__all__ = [
    "NoSamplesError",
    "median",
    "coefficient_of_variation",
    "aggregate",
    "pool",
]
