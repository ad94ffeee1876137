import pytest

from powerscore.models import Aggregate, MetricKind, MetricScore, Rating
from powerscore.rating import (
    IssueFloors,
    ThresholdTable,
    collect_issues,
    rate,
    rating_label,
    rating_score,
    stability_score,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (8000.01, Rating.EXCELLENT),
        (8000.0, Rating.GOOD),
        (5000.0, Rating.GOOD),
        (4999.99, Rating.FAIR),
        (2500.0, Rating.FAIR),
        (2499.0, Rating.POOR),
        (0.0, Rating.POOR),
    ],
)
def test_cpu_boundaries(value, expected) -> None:
    assert rate(MetricKind.CPU, value) is expected


@pytest.mark.parametrize(
    ("kind", "value", "expected"),
    [
        (MetricKind.MEMORY, 20000.0, Rating.GOOD),
        (MetricKind.MEMORY, 20000.5, Rating.EXCELLENT),
        (MetricKind.DISK, 310.0, Rating.GOOD),
        (MetricKind.DISK, 100.0, Rating.FAIR),
        (MetricKind.NETWORK, 20.0, Rating.GOOD),
        (MetricKind.NETWORK, 4.9, Rating.POOR),
    ],
)
def test_higher_is_better_tables(kind, value, expected) -> None:
    assert rate(kind, value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0.0, Rating.EXCELLENT),
        (0.50, Rating.EXCELLENT),
        (0.51, Rating.GOOD),
        (0.90, Rating.GOOD),
        (1.20, Rating.FAIR),
        (1.21, Rating.POOR),
    ],
)
def test_load_table_is_inclusive_and_lower_is_better(value, expected) -> None:
    assert rate(MetricKind.LOAD, value) is expected


def test_threshold_table_rejects_unordered_cut_points() -> None:
    with pytest.raises(ValueError, match="ordered"):
        ThresholdTable(excellent=100, good=200, fair=50)
    with pytest.raises(ValueError, match="ordered"):
        ThresholdTable(excellent=1.0, good=0.5, fair=2.0, higher_is_better=False)


def test_custom_tables_override_defaults() -> None:
    tables = {MetricKind.NETWORK: ThresholdTable(excellent=100, good=50, fair=25)}
    assert rate(MetricKind.NETWORK, 30.0, tables) is Rating.FAIR


def test_rating_scores_and_order() -> None:
    assert [rating_score(r) for r in Rating] == [40, 60, 80, 100]
    assert Rating.GOOD.at_least(Rating.GOOD)
    assert Rating.EXCELLENT.at_least(Rating.GOOD)
    assert not Rating.FAIR.at_least(Rating.GOOD)


def test_load_fair_is_labelled_moderate() -> None:
    assert rating_label(MetricKind.LOAD, Rating.FAIR) == "Moderate"
    assert rating_label(MetricKind.CPU, Rating.FAIR) == "Fair"


@pytest.mark.parametrize(("ratio", "expected"), [(0.2, 95), (0.8, 95), (1.0, 80), (1.5, 60)])
def test_stability_score(ratio, expected) -> None:
    assert stability_score(ratio) == expected


def _metric(kind, raw, *, cv=0.0, unmeasured=False, failures=0) -> MetricScore:
    rating = Rating.POOR if unmeasured else rate(kind, raw)
    return MetricScore(
        kind=kind,
        raw=raw,
        aggregate=Aggregate(
            median=raw, cv_pct=cv, minimum=raw, maximum=raw, count=3, failures=failures
        ),
        normalized=0.0,
        rating=rating,
        rating_score=rating_score(rating),
        label=rating_label(kind, rating),
        unmeasured=unmeasured,
    )


def _healthy_metrics() -> dict[MetricKind, MetricScore]:
    return {
        MetricKind.CPU: _metric(MetricKind.CPU, 9000.0),
        MetricKind.MEMORY: _metric(MetricKind.MEMORY, 21000.0),
        MetricKind.DISK: _metric(MetricKind.DISK, 600.0),
        MetricKind.NETWORK: _metric(MetricKind.NETWORK, 25.0),
        MetricKind.LOAD: _metric(MetricKind.LOAD, 0.2),
    }


def test_healthy_host_has_no_issues() -> None:
    issues = collect_issues(
        _healthy_metrics(),
        cpu_efficiency_pct=110.0,
        stability=95,
        ports={"google.com:80": "ok", "google.com:443": "ok"},
    )
    assert issues == []


def test_issue_floors_and_variance_flags() -> None:
    metrics = _healthy_metrics()
    metrics[MetricKind.NETWORK] = _metric(MetricKind.NETWORK, 8.0, cv=25.0)
    metrics[MetricKind.DISK] = _metric(MetricKind.DISK, 250.0, cv=12.5)
    metrics[MetricKind.CPU] = _metric(MetricKind.CPU, 9000.0, cv=12.0)
    issues = collect_issues(metrics, cpu_efficiency_pct=70.0, stability=60)
    assert issues == [
        "Network median < 10 MB/s (slow upstream)",
        "Disk write < 300 MB/s (may throttle builds/containers)",
        "Per-core efficiency < 80% baseline",
        "Stability score < 80 (high load ratio)",
        "Disk write variance high",
        "Network variance very high",
    ]


def test_blocked_ports_are_reported_once_per_port() -> None:
    issues = collect_issues(
        _healthy_metrics(),
        cpu_efficiency_pct=110.0,
        stability=95,
        ports={
            "google.com:80": "blocked",
            "example.com:80": "blocked",
            "google.com:443": "blocked",
            "1.1.1.1:53": "blocked",
        },
    )
    assert issues == ["Outbound HTTP (80) blocked", "Outbound HTTPS (443) blocked"]


def test_unmeasured_metric_is_reported_first() -> None:
    metrics = _healthy_metrics()
    metrics[MetricKind.NETWORK] = _metric(MetricKind.NETWORK, 0.0, unmeasured=True, failures=3)
    issues = collect_issues(metrics, cpu_efficiency_pct=110.0, stability=95)
    assert issues[0] == "Network probe failed on all 3 trials (reported as 0 / Poor)"
    assert "Network median < 10 MB/s (slow upstream)" in issues


def test_custom_floors_are_honoured() -> None:
    metrics = _healthy_metrics()
    floors = IssueFloors(network_median_mb_s=50.0)
    issues = collect_issues(metrics, cpu_efficiency_pct=110.0, stability=95, floors=floors)
    assert issues == ["Network median < 50 MB/s (slow upstream)"]
