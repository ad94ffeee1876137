"""Normalization, composite power score, verdicts, strict gate and tiers."""

from __future__ import annotations

from collections.abc import Mapping

from .config import ConfigError, ScoreWeights
from .constants import GATE_MINIMUM_SCORE
from .models import SCORED_KINDS, GateDecision, MetricKind, Rating, Tier, Verdict


def normalize(value: float, ceiling: float) -> float:
    """Map a raw value onto 0-100 relative to `ceiling`, clamped at both ends."""
    if ceiling <= 0:
        raise ConfigError(f"Normalization ceiling must be positive (got {ceiling})")
    scaled = value / ceiling * 100.0
    return max(0.0, min(100.0, scaled))


def cpu_ceiling(per_core_ceiling: float, vcpus: int) -> float:
    """Scale the per-core CPU ceiling by the vCPU count."""
    return per_core_ceiling * max(1, vcpus)


def per_core_efficiency(events_per_sec: float, vcpus: int, per_core_ceiling: float) -> float:
    """Return unclamped CPU throughput as a percentage of the per-core baseline."""
    if per_core_ceiling <= 0:
        raise ConfigError(f"CPU per-core ceiling must be positive (got {per_core_ceiling})")
    return events_per_sec / cpu_ceiling(per_core_ceiling, vcpus) * 100.0


def _weighted_sum(scores: Mapping[MetricKind, float], weights: ScoreWeights) -> float:
    missing = [kind.value for kind in SCORED_KINDS if kind not in scores]
    if missing:
        raise ValueError(f"Composite score requires every metric; missing: {', '.join(missing)}")
    return sum(weights.for_kind(kind) * scores[kind] for kind in SCORED_KINDS)


def power_score(
    rating_scores: Mapping[MetricKind, float],
    weights: ScoreWeights | None = None,
) -> float:
    """Blend the five rating-based sub-scores into one 0-100 figure (one decimal)."""
    return round(_weighted_sum(rating_scores, weights or ScoreWeights()), 1)


def normalized_power_score(
    normalized: Mapping[MetricKind, float],
    stability: float,
    weights: ScoreWeights | None = None,
) -> float:
    """Blend continuous normalized scores with the load stability score (one decimal)."""
    scores = {kind: value for kind, value in normalized.items() if kind is not MetricKind.LOAD}
    scores[MetricKind.LOAD] = stability
    return round(_weighted_sum(scores, weights or ScoreWeights()), 1)


def verdict(score: float) -> Verdict:
    """Map a power score to its four-level verdict."""
    if score >= 85:
        return Verdict.EXCELLENT
    if score >= 70:
        return Verdict.STRONG
    if score >= 55:
        return Verdict.MODERATE
    return Verdict.WEAK


def strict_gate(
    ratings: Mapping[MetricKind, Rating],
    score: float,
    *,
    minimum_score: float = GATE_MINIMUM_SCORE,
) -> GateDecision:
    """KEEP only when every metric is Good or better and the score meets the minimum."""
    reasons: list[str] = []
    for kind in SCORED_KINDS:
        rating = ratings.get(kind)
        if rating is None:
            reasons.append(f"{kind.value} was not rated")
        elif not rating.at_least(Rating.GOOD):
            reasons.append(f"{kind.value} rated {rating.value} (needs Good or better)")
    if score < minimum_score:
        reasons.append(f"power score {score:.1f} below {minimum_score:g}")
    passed = not reasons
    return GateDecision(passed=passed, decision="KEEP" if passed else "SKIP", reasons=reasons)


def classify_tier(vcpus: int, ram_mb: int, cpu_events_per_sec: float) -> Tier:
    """Classify host capacity from core count, RAM and CPU throughput."""
    if vcpus >= 8 and ram_mb >= 16000 and cpu_events_per_sec > 8000:
        return Tier.POWER
    if vcpus >= 4 and ram_mb >= 6000:
        return Tier.STANDARD
    return Tier.LIMITED


WORKLOADS = (
    "VS Code / Cursor IDE",
    "Docker + N8N Workflows",
    "XRDP GUI / Remote Desktop",
    "Full Stack Multitasking",
)
"""Workloads listed in the suitability matrix."""


def workload_requirements(vcpus: int) -> dict[MetricKind, float]:
    """Return core-adaptive minimum CPU/memory/disk/network values."""
    if vcpus <= 2:
        return {
            MetricKind.CPU: 3500,
            MetricKind.MEMORY: 10000,
            MetricKind.DISK: 200,
            MetricKind.NETWORK: 10,
        }
    if vcpus <= 4:
        return {
            MetricKind.CPU: 6000,
            MetricKind.MEMORY: 18000,
            MetricKind.DISK: 300,
            MetricKind.NETWORK: 20,
        }
    return {
        MetricKind.CPU: 8000,
        MetricKind.MEMORY: 25000,
        MetricKind.DISK: 500,
        MetricKind.NETWORK: 30,
    }


def check_suitability(raw: Mapping[MetricKind, float], vcpus: int) -> dict[str, str]:
    """Mark every workload Suitable when all raw metrics meet the adaptive minimums."""
    requirements = workload_requirements(vcpus)
    meets = all(raw.get(kind, 0.0) >= minimum for kind, minimum in requirements.items())
    status = "Suitable" if meets else "Limited"
    return {workload: status for workload in WORKLOADS}


__all__ = [
    "normalize",
    "cpu_ceiling",
    "per_core_efficiency",
    "power_score",
    "normalized_power_score",
    "verdict",
    "strict_gate",
    "classify_tier",
    "WORKLOADS",
    "workload_requirements",
    "check_suitability",
]
