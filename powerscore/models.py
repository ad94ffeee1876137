"""Typed models for probes, samples, aggregates and score cards."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MetricKind(StrEnum):
    """Metric families that feed the composite score."""

    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"
    NETWORK = "network"
    LOAD = "load"


SCORED_KINDS: tuple[MetricKind, ...] = (
    MetricKind.CPU,
    MetricKind.MEMORY,
    MetricKind.DISK,
    MetricKind.NETWORK,
    MetricKind.LOAD,
)
"""Metric kinds in report order."""


class Rating(StrEnum):
    """Four-level qualitative rating, ordered Poor < Fair < Good < Excellent."""

    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"

    @property
    def rank(self) -> int:
        return _RATING_ORDER.index(self)

    def at_least(self, other: Rating) -> bool:
        """Return whether this rating is `other` or better."""
        return self.rank >= other.rank


_RATING_ORDER = (Rating.POOR, Rating.FAIR, Rating.GOOD, Rating.EXCELLENT)


class Verdict(StrEnum):
    """Final classification of a power score."""

    EXCELLENT = "Excellent / Workstation Class"
    STRONG = "Strong / Good"
    MODERATE = "Moderate / Fair"
    WEAK = "Weak / Poor"


class Tier(StrEnum):
    """Capacity tier from core count, RAM and CPU throughput."""

    POWER = "POWER"
    STANDARD = "STANDARD"
    LIMITED = "LIMITED"


class Probe(BaseModel):
    """A named, parameterized measurement operation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    unit: str
    kind: MetricKind | None = None
    trials: int = Field(default=3, ge=1)
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    ceiling: float | None = Field(default=None, gt=0.0)


class SampleSet(BaseModel):
    """Observations collected for one probe in one run."""

    probe: str
    values: list[float] = Field(default_factory=list)
    failures: int = Field(default=0, ge=0)

    @property
    def all_failed(self) -> bool:
        return bool(self.values) and self.failures >= len(self.values)


class Aggregate(BaseModel):
    """Median and variability summary of a sample set."""

    median: float
    cv_pct: float
    minimum: float
    maximum: float
    count: int
    failures: int = 0


class MetricScore(BaseModel):
    """Both score representations for one scored metric."""

    kind: MetricKind
    raw: float
    aggregate: Aggregate
    normalized: float = Field(ge=0.0, le=100.0)
    rating: Rating
    rating_score: int
    label: str
    unmeasured: bool = False


class GateDecision(BaseModel):
    """Strict pass/fail decision over ratings and power score."""

    passed: bool
    decision: str
    reasons: list[str] = Field(default_factory=list)


class HostFacts(BaseModel):
    """Static facts about the benchmarked host."""

    host: str = "unknown"
    os: str = "unknown"
    kernel: str = "unknown"
    cpu_model: str = "unknown"
    vcpus: int = Field(default=1, ge=1)
    ram_mb: int = Field(default=0, ge=0)
    disk_total_mb: int = Field(default=0, ge=0)
    uptime: str = "unknown"


class MirrorResult(BaseModel):
    """Per-mirror download aggregate."""

    url: str
    median_mb_s: float
    minimum_mb_s: float
    maximum_mb_s: float


class Diagnostics(BaseModel):
    """Measurements reported alongside the score but never scored."""

    disk_read: Aggregate | None = None
    iops_4k: float = 0.0
    ping_ms: float | None = None
    mirrors: list[MirrorResult] = Field(default_factory=list)
    network_best_mb_s: float = 0.0
    ports: dict[str, str] = Field(default_factory=dict)

    @property
    def connectivity_pct(self) -> float:
        if not self.ports:
            return 0.0
        reachable = sum(1 for status in self.ports.values() if status == "ok")
        return round(reachable / len(self.ports) * 100, 1)


class ScoreCard(BaseModel):
    """Complete output contract of one benchmark run."""

    host_facts: HostFacts
    timestamp_utc: str
    mode: str
    metrics: dict[MetricKind, MetricScore]
    cpu_per_core_eff_pct: float
    stability_score: int
    diagnostics: Diagnostics = Field(default_factory=Diagnostics)
    power_score: float
    normalized_power_score: float
    verdict: Verdict
    gate: GateDecision
    tier: Tier
    suitability: dict[str, str] = Field(default_factory=dict)
    issues: list[str] = Field(default_factory=list)
    weights: dict[str, float] = Field(default_factory=dict)

    @property
    def host(self) -> str:
        return self.host_facts.host

    def metric(self, kind: MetricKind) -> MetricScore:
        return self.metrics[kind]


class RecordedSamples(BaseModel):
    """Raw sample sets of one run, sufficient to rescore offline."""

    host_facts: HostFacts = Field(default_factory=HostFacts)
    timestamp_utc: str | None = None
    mode: str = "accurate"
    samples: dict[str, SampleSet] = Field(default_factory=dict)
    mirrors: dict[str, SampleSet] = Field(default_factory=dict)
    iops_4k: float = 0.0
    ping_ms: float | None = None
    ports: dict[str, str] = Field(default_factory=dict)

    def sample_set(self, probe: str) -> SampleSet | None:
        return self.samples.get(probe)

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


__all__ = [
    "MetricKind",
    "SCORED_KINDS",
    "Rating",
    "Verdict",
    "Tier",
    "Probe",
    "SampleSet",
    "Aggregate",
    "MetricScore",
    "GateDecision",
    "HostFacts",
    "MirrorResult",
    "Diagnostics",
    "ScoreCard",
    "RecordedSamples",
]
