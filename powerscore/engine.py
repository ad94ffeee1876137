"""Benchmark orchestration: sample every probe, then score the recorded samples."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .config import (
    CPU_PROBE,
    DISK_READ_PROBE,
    DISK_WRITE_PROBE,
    LOAD_PROBE,
    MEMORY_PROBE,
    EngineConfig,
    mirror_probe_name,
)
from .constants import PING_TARGET
from .models import (
    SCORED_KINDS,
    Aggregate,
    Diagnostics,
    HostFacts,
    MetricKind,
    MetricScore,
    MirrorResult,
    Rating,
    RecordedSamples,
    SampleSet,
    ScoreCard,
)
from .probes import ProbeExecutor
from .rating import collect_issues, rate, rating_label, rating_score, stability_score
from .sampler import Sampler
from .scoring import (
    check_suitability,
    classify_tier,
    normalize,
    normalized_power_score,
    per_core_efficiency,
    power_score,
    strict_gate,
    verdict,
)
from .stats import aggregate, pool

logger = logging.getLogger(__name__)

_METRIC_PROBES = {
    MetricKind.CPU: CPU_PROBE,
    MetricKind.MEMORY: MEMORY_PROBE,
    MetricKind.DISK: DISK_WRITE_PROBE,
    MetricKind.LOAD: LOAD_PROBE,
}
_UNMEASURED_STABILITY = 60
_NETWORK_POOL = "network_mb_s"


def _log_event(level: int, event: str, message: str, *args, **context) -> None:
    """Emit module log with structured event fields."""
    extra = {"evt": event}
    for key, value in context.items():
        if value is None:
            continue
        extra[key] = str(value)
    logger.log(level, message, *args, extra=extra)


def utc_timestamp(moment: datetime | None = None) -> str:
    """Return an ISO-8601 UTC timestamp with a trailing Z."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class BenchmarkEngine:
    """Run the probe plan through a sampler and build a ScoreCard."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        executor: ProbeExecutor | None = None,
        sampler: Sampler | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.executor = executor
        self.sampler = sampler or Sampler(executor)

    def run(self, host_facts: HostFacts | None = None) -> ScoreCard:
        """Sample every probe in run order and score the result."""
        return self.score(self.collect(host_facts))

    def collect(self, host_facts: HostFacts | None = None) -> RecordedSamples:
        """Sample every probe and gather diagnostics without scoring."""
        facts = host_facts or HostFacts()
        plan = self.config.build_probes(vcpus=facts.vcpus)
        _log_event(
            logging.INFO,
            "RUN_START",
            "Benchmark run started: mode=%s trials=%d probes=%d",
            self.config.mode,
            self.config.trials_per_probe,
            len(plan),
            host=facts.host,
            state="running",
        )
        samples: dict[str, SampleSet] = {}
        for name in (CPU_PROBE, MEMORY_PROBE, DISK_WRITE_PROBE, DISK_READ_PROBE):
            samples[name] = self.sampler.sample(plan[name])
        mirrors: dict[str, SampleSet] = {}
        for index, url in enumerate(self.config.mirrors):
            mirrors[url] = self.sampler.sample(plan[mirror_probe_name(index)])
        samples[LOAD_PROBE] = self.sampler.sample(plan[LOAD_PROBE])

        recorded = RecordedSamples(
            host_facts=facts,
            timestamp_utc=utc_timestamp(),
            mode=self.config.mode.value,
            samples=samples,
            mirrors=mirrors,
        )
        self._collect_diagnostics(recorded)
        return recorded

    def _collect_diagnostics(self, recorded: RecordedSamples) -> None:
        executor = self.executor
        if executor is None:
            return
        iops = getattr(executor, "iops_4k", None)
        if callable(iops):
            recorded.iops_4k = iops()
        ping = getattr(executor, "ping_ms", None)
        if callable(ping):
            recorded.ping_ms = ping(PING_TARGET)
        ports = getattr(executor, "port_checks", None)
        if callable(ports):
            recorded.ports = ports()
        cleanup = getattr(executor, "cleanup", None)
        if callable(cleanup):
            cleanup()

    def _metric_sample_set(self, kind: MetricKind, samples: RecordedSamples) -> SampleSet | None:
        if kind is MetricKind.NETWORK:
            if not samples.mirrors:
                return None
            return pool(_NETWORK_POOL, samples.mirrors.values())
        return samples.sample_set(_METRIC_PROBES[kind])

    def _score_metric(
        self,
        kind: MetricKind,
        sample_set: SampleSet | None,
        *,
        vcpus: int,
    ) -> MetricScore:
        if sample_set is None or not sample_set.values:
            empty = Aggregate(median=0.0, cv_pct=0.0, minimum=0.0, maximum=0.0, count=0)
            return MetricScore(
                kind=kind,
                raw=0.0,
                aggregate=empty,
                normalized=0.0,
                rating=Rating.POOR,
                rating_score=rating_score(Rating.POOR),
                label=rating_label(kind, Rating.POOR),
                unmeasured=True,
            )
        summary = aggregate(sample_set, exclude_failed=self.config.exclude_failed_trials)
        if sample_set.all_failed:
            raw = 0.0
            rating = Rating.POOR
            normalized = 0.0
        else:
            raw = summary.median
            rating = rate(kind, raw, self.config.thresholds)
            if kind is MetricKind.LOAD:
                normalized = float(stability_score(raw))
            else:
                normalized = normalize(raw, self.config.ceiling_for(kind, vcpus=vcpus))
        return MetricScore(
            kind=kind,
            raw=raw,
            aggregate=summary,
            normalized=round(normalized, 1),
            rating=rating,
            rating_score=rating_score(rating),
            label=rating_label(kind, rating),
            unmeasured=sample_set.all_failed,
        )

    def _diagnostics(self, samples: RecordedSamples) -> Diagnostics:
        disk_read = samples.sample_set(DISK_READ_PROBE)
        mirror_results = []
        for url, sample_set in samples.mirrors.items():
            if not sample_set.values:
                continue
            summary = aggregate(sample_set, exclude_failed=self.config.exclude_failed_trials)
            mirror_results.append(
                MirrorResult(
                    url=url,
                    median_mb_s=summary.median,
                    minimum_mb_s=summary.minimum,
                    maximum_mb_s=summary.maximum,
                )
            )
        return Diagnostics(
            disk_read=(
                aggregate(disk_read, exclude_failed=self.config.exclude_failed_trials)
                if disk_read is not None and disk_read.values
                else None
            ),
            iops_4k=samples.iops_4k,
            ping_ms=samples.ping_ms,
            mirrors=mirror_results,
            network_best_mb_s=max((item.maximum_mb_s for item in mirror_results), default=0.0),
            ports=dict(samples.ports),
        )

    def score(self, samples: RecordedSamples) -> ScoreCard:
        """Score recorded sample sets; probe order never changes the result."""
        facts = samples.host_facts
        vcpus = facts.vcpus
        metrics = {
            kind: self._score_metric(kind, self._metric_sample_set(kind, samples), vcpus=vcpus)
            for kind in SCORED_KINDS
        }
        load = metrics[MetricKind.LOAD]
        stability = _UNMEASURED_STABILITY if load.unmeasured else stability_score(load.raw)
        cpu_efficiency = round(
            per_core_efficiency(
                metrics[MetricKind.CPU].raw, vcpus, self.config.ceilings.cpu_per_core
            ),
            1,
        )
        diagnostics = self._diagnostics(samples)
        issues = collect_issues(
            metrics,
            cpu_efficiency_pct=cpu_efficiency,
            stability=stability,
            ports=diagnostics.ports,
            floors=self.config.issue_floors,
        )
        weights = self.config.weights
        composite = power_score(
            {kind: metric.rating_score for kind, metric in metrics.items()}, weights
        )
        continuous = normalized_power_score(
            {kind: metric.normalized for kind, metric in metrics.items()}, stability, weights
        )
        gate = strict_gate(
            {kind: metric.rating for kind, metric in metrics.items()},
            composite,
            minimum_score=self.config.gate_minimum_score,
        )
        scorecard = ScoreCard(
            host_facts=facts,
            timestamp_utc=samples.timestamp_utc or utc_timestamp(),
            mode=samples.mode,
            metrics=metrics,
            cpu_per_core_eff_pct=cpu_efficiency,
            stability_score=stability,
            diagnostics=diagnostics,
            power_score=composite,
            normalized_power_score=continuous,
            verdict=verdict(composite),
            gate=gate,
            tier=classify_tier(vcpus, facts.ram_mb, metrics[MetricKind.CPU].raw),
            suitability=check_suitability(
                {kind: metric.raw for kind, metric in metrics.items()}, vcpus
            ),
            issues=issues,
            weights=weights.as_dict(),
        )
        _log_event(
            logging.INFO,
            "SCORE_COMPLETE",
            "Power score %.1f (%s), gate %s, %d issues",
            scorecard.power_score,
            scorecard.verdict.value,
            scorecard.gate.decision,
            len(scorecard.issues),
            host=facts.host,
            state="done",
        )
        return scorecard


__all__ = [
    "utc_timestamp",
    "BenchmarkEngine",
]
