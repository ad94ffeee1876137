"""Threshold ratings, the load stability score and advisory issue flags."""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, model_validator

from .models import MetricKind, MetricScore, Rating

RATING_SCORES: dict[Rating, int] = {
    Rating.EXCELLENT: 100,
    Rating.GOOD: 80,
    Rating.FAIR: 60,
    Rating.POOR: 40,
}
"""Fixed numeric contribution of each rating to the composite score."""


class ThresholdTable(BaseModel):
    """Ordered cut points for one metric.

    Higher-is-better tables use a strict bound for Excellent and inclusive
    bounds below it. Lower-is-better tables (load ratio) are inclusive at
    every level.
    """

    model_config = ConfigDict(extra="forbid")

    excellent: float
    good: float
    fair: float
    higher_is_better: bool = True

    @model_validator(mode="after")
    def validate_order(self) -> ThresholdTable:
        if self.higher_is_better:
            ordered = self.excellent >= self.good >= self.fair
        else:
            ordered = self.excellent <= self.good <= self.fair
        if not ordered:
            raise ValueError(
                "thresholds must be ordered excellent/good/fair "
                f"({'descending' if self.higher_is_better else 'ascending'})"
            )
        return self

    def rate(self, value: float) -> Rating:
        """Map a raw value to a rating."""
        if self.higher_is_better:
            if value > self.excellent:
                return Rating.EXCELLENT
            if value >= self.good:
                return Rating.GOOD
            if value >= self.fair:
                return Rating.FAIR
            return Rating.POOR
        if value <= self.excellent:
            return Rating.EXCELLENT
        if value <= self.good:
            return Rating.GOOD
        if value <= self.fair:
            return Rating.FAIR
        return Rating.POOR


DEFAULT_THRESHOLDS: dict[MetricKind, ThresholdTable] = {
    MetricKind.CPU: ThresholdTable(excellent=8000, good=5000, fair=2500),
    MetricKind.MEMORY: ThresholdTable(excellent=20000, good=10000, fair=5000),
    MetricKind.DISK: ThresholdTable(excellent=500, good=300, fair=100),
    MetricKind.NETWORK: ThresholdTable(excellent=20, good=10, fair=5),
    MetricKind.LOAD: ThresholdTable(excellent=0.50, good=0.90, fair=1.20, higher_is_better=False),
}
"""Rating cut points per metric kind."""


class IssueFloors(BaseModel):
    """Absolute floors below (or ceilings above) which an issue string is raised."""

    model_config = ConfigDict(extra="forbid")

    network_median_mb_s: float = 10.0
    disk_write_mb_s: float = 300.0
    cpu_efficiency_pct: float = 80.0
    stability_score: float = 80.0
    cv_pct: float = 12.0
    network_cv_pct: float = 20.0


def rate(
    kind: MetricKind,
    value: float,
    tables: Mapping[MetricKind, ThresholdTable] | None = None,
) -> Rating:
    """Rate a raw metric value with the table registered for its kind."""
    table = (tables or DEFAULT_THRESHOLDS)[kind]
    return table.rate(value)


def rating_score(rating: Rating) -> int:
    """Return the fixed composite contribution of a rating."""
    return RATING_SCORES[rating]


def rating_label(kind: MetricKind, rating: Rating) -> str:
    """Return the display label; the load metric calls its Fair level Moderate."""
    if kind is MetricKind.LOAD and rating is Rating.FAIR:
        return "Moderate"
    return rating.value


def stability_score(load_ratio: float) -> int:
    """Map load ratio (1-min load average per vCPU) to the 95/80/60 stability score."""
    if load_ratio <= 0.8:
        return 95
    if load_ratio <= 1.2:
        return 80
    return 60


_METRIC_TITLES = {
    MetricKind.CPU: "CPU",
    MetricKind.MEMORY: "Memory",
    MetricKind.DISK: "Disk write",
    MetricKind.NETWORK: "Network",
    MetricKind.LOAD: "Load",
}

_BLOCKED_PORT_ISSUES = {
    "80": "Outbound HTTP (80) blocked",
    "443": "Outbound HTTPS (443) blocked",
}


def collect_issues(
    metrics: Mapping[MetricKind, MetricScore],
    *,
    cpu_efficiency_pct: float,
    stability: int,
    ports: Mapping[str, str] | None = None,
    floors: IssueFloors | None = None,
) -> list[str]:
    """Collect advisory issue strings; they never influence any score."""
    floors = floors or IssueFloors()
    issues: list[str] = []

    for kind, metric in metrics.items():
        if not metric.unmeasured:
            continue
        if metric.aggregate.failures:
            issues.append(
                f"{_METRIC_TITLES[kind]} probe failed on all "
                f"{metric.aggregate.failures} trials (reported as 0 / Poor)"
            )
        else:
            issues.append(f"{_METRIC_TITLES[kind]} probe was not run (reported as 0 / Poor)")

    reported_ports: set[str] = set()
    for target, status in (ports or {}).items():
        port = target.rsplit(":", 1)[-1]
        message = _BLOCKED_PORT_ISSUES.get(port)
        if message and status != "ok" and port not in reported_ports:
            issues.append(message)
            reported_ports.add(port)

    network = metrics.get(MetricKind.NETWORK)
    if network is not None and network.raw < floors.network_median_mb_s:
        issues.append(f"Network median < {floors.network_median_mb_s:g} MB/s (slow upstream)")
    disk = metrics.get(MetricKind.DISK)
    if disk is not None and disk.raw < floors.disk_write_mb_s:
        issues.append(
            f"Disk write < {floors.disk_write_mb_s:g} MB/s (may throttle builds/containers)"
        )
    if MetricKind.CPU in metrics and cpu_efficiency_pct < floors.cpu_efficiency_pct:
        issues.append(f"Per-core efficiency < {floors.cpu_efficiency_pct:g}% baseline")
    if MetricKind.LOAD in metrics and stability < floors.stability_score:
        issues.append(f"Stability score < {floors.stability_score:g} (high load ratio)")

    cpu = metrics.get(MetricKind.CPU)
    if cpu is not None and cpu.aggregate.cv_pct > floors.cv_pct:
        issues.append("CPU variance high (noisy neighbor?)")
    memory = metrics.get(MetricKind.MEMORY)
    if memory is not None and memory.aggregate.cv_pct > floors.cv_pct:
        issues.append("Memory variance high")
    if disk is not None and disk.aggregate.cv_pct > floors.cv_pct:
        issues.append("Disk write variance high")
    if network is not None and network.aggregate.cv_pct > floors.network_cv_pct:
        issues.append("Network variance very high")
    return issues


__all__ = [
    "RATING_SCORES",
    "ThresholdTable",
    "DEFAULT_THRESHOLDS",
    "IssueFloors",
    "rate",
    "rating_score",
    "rating_label",
    "stability_score",
    "collect_issues",
]
