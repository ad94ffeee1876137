import random

import pytest

from powerscore.config import (
    CPU_PROBE,
    DISK_READ_PROBE,
    DISK_WRITE_PROBE,
    LOAD_PROBE,
    MEMORY_PROBE,
    EngineConfig,
    mirror_probe_name,
)
from powerscore.engine import BenchmarkEngine, utc_timestamp
from powerscore.models import (
    SCORED_KINDS,
    HostFacts,
    MetricKind,
    Rating,
    RecordedSamples,
    SampleSet,
    Tier,
    Verdict,
)
from powerscore.probes import CallableProbeExecutor, ProbeError

MIRROR_A = "http://mirror-a.test/10mb.bin"
MIRROR_B = "http://mirror-b.test/10mb.bin"


class _RecordingExecutor(CallableProbeExecutor):
    """Callable executor that records probe order and offers diagnostics."""

    def __init__(self, trials):
        super().__init__(trials)
        self.order: list[str] = []
        self.cleaned = False

    def trial_for(self, probe):
        self.order.append(probe.name)
        return super().trial_for(probe)

    def iops_4k(self) -> float:
        return 15000.0

    def ping_ms(self, target: str) -> float:
        return 0.9

    def port_checks(self) -> dict[str, str]:
        return {"google.com:80": "ok", "google.com:443": "blocked"}

    def cleanup(self) -> None:
        self.cleaned = True


def _constant_trials(**overrides):
    trials = {
        CPU_PROBE: lambda: 9000.0,
        MEMORY_PROBE: lambda: 21000.0,
        DISK_WRITE_PROBE: lambda: 600.0,
        DISK_READ_PROBE: lambda: 900.0,
        mirror_probe_name(0): lambda: 25.0,
        mirror_probe_name(1): lambda: 27.0,
        LOAD_PROBE: lambda: 0.2,
    }
    trials.update(overrides)
    return trials


def test_scenario_a_cpu_normalized_per_core_and_rated_absolute(
    engine_config, strong_samples
) -> None:
    scorecard = BenchmarkEngine(engine_config).score(strong_samples)
    cpu = scorecard.metric(MetricKind.CPU)
    assert cpu.raw == 9000.0
    assert cpu.normalized == pytest.approx(28.1)
    assert cpu.rating is Rating.EXCELLENT
    assert cpu.rating_score == 100
    assert scorecard.cpu_per_core_eff_pct == pytest.approx(28.1)
    assert "Per-core efficiency < 80% baseline" in scorecard.issues


def test_strong_host_scores_excellent_and_passes_gate(engine_config, strong_samples) -> None:
    scorecard = BenchmarkEngine(engine_config).score(strong_samples)
    assert all(scorecard.metric(kind).rating is Rating.EXCELLENT for kind in SCORED_KINDS)
    assert scorecard.power_score == 100.0
    assert scorecard.verdict is Verdict.EXCELLENT
    assert scorecard.gate.decision == "KEEP"
    assert scorecard.tier is Tier.POWER
    assert scorecard.stability_score == 95
    assert scorecard.normalized_power_score == pytest.approx(71.2, abs=0.1)
    assert scorecard.metric(MetricKind.NETWORK).raw == pytest.approx(26.75)
    assert scorecard.diagnostics.network_best_mb_s == 29.0
    assert scorecard.diagnostics.disk_read.median == 920.0
    assert scorecard.timestamp_utc == "2026-10-16T12:00:00Z"
    assert scorecard.weights["cpu"] == 0.35


def test_scenario_b_all_poor_scores_forty(engine_config, host_facts) -> None:
    samples = RecordedSamples(
        host_facts=host_facts,
        samples={
            CPU_PROBE: SampleSet(probe=CPU_PROBE, values=[1000.0]),
            MEMORY_PROBE: SampleSet(probe=MEMORY_PROBE, values=[2000.0]),
            DISK_WRITE_PROBE: SampleSet(probe=DISK_WRITE_PROBE, values=[50.0]),
            LOAD_PROBE: SampleSet(probe=LOAD_PROBE, values=[2.5]),
        },
        mirrors={MIRROR_A: SampleSet(probe=mirror_probe_name(0), values=[1.0])},
    )
    scorecard = BenchmarkEngine(engine_config).score(samples)
    assert {scorecard.metric(kind).rating for kind in SCORED_KINDS} == {Rating.POOR}
    assert scorecard.power_score == 40.0
    assert scorecard.verdict is Verdict.WEAK
    assert scorecard.gate.decision == "SKIP"
    assert scorecard.stability_score == 60
    assert scorecard.tier is Tier.STANDARD


def test_scenario_c_network_timing_out_everywhere(engine_config, strong_samples) -> None:
    strong_samples.mirrors = {
        MIRROR_A: SampleSet(probe=mirror_probe_name(0), values=[0.0, 0.0, 0.0], failures=3),
    }
    scorecard = BenchmarkEngine(engine_config).score(strong_samples)
    network = scorecard.metric(MetricKind.NETWORK)
    assert network.raw == 0.0
    assert network.aggregate.median == 0.0
    assert network.aggregate.cv_pct == 0.0
    assert network.rating is Rating.POOR
    assert network.unmeasured is True
    assert "Network probe failed on all 3 trials (reported as 0 / Poor)" in scorecard.issues
    assert any(issue.startswith("Network median") for issue in scorecard.issues)
    assert scorecard.gate.decision == "SKIP"


def test_network_best_is_fastest_single_run_across_mirrors(
    engine_config, strong_samples
) -> None:
    strong_samples.mirrors = {
        MIRROR_A: SampleSet(probe=mirror_probe_name(0), values=[5.0, 6.0, 40.0]),
        MIRROR_B: SampleSet(probe=mirror_probe_name(1), values=[7.0, 7.0, 7.0]),
    }
    scorecard = BenchmarkEngine(engine_config).score(strong_samples)
    assert [item.median_mb_s for item in scorecard.diagnostics.mirrors] == [6.0, 7.0]
    assert scorecard.diagnostics.network_best_mb_s == 40.0
    assert scorecard.metric(MetricKind.NETWORK).raw == 7.0


def test_scenario_d_disk_write_good_without_variance_issue(engine_config, strong_samples) -> None:
    strong_samples.samples[DISK_WRITE_PROBE] = SampleSet(
        probe=DISK_WRITE_PROBE, values=[310.0, 295.0, 330.0]
    )
    scorecard = BenchmarkEngine(engine_config).score(strong_samples)
    disk = scorecard.metric(MetricKind.DISK)
    assert disk.raw == 310.0
    assert disk.rating is Rating.GOOD
    assert disk.rating_score == 80
    assert disk.aggregate.cv_pct == pytest.approx(5.6, abs=0.1)
    assert "Disk write variance high" not in scorecard.issues
    assert not any(issue.startswith("Disk write <") for issue in scorecard.issues)


def test_score_is_invariant_under_probe_order(engine_config, strong_samples) -> None:
    engine = BenchmarkEngine(engine_config)
    baseline = engine.score(strong_samples)
    shuffled_keys = list(strong_samples.samples)
    random.Random(7).shuffle(shuffled_keys)
    reordered = strong_samples.model_copy(
        update={
            "samples": {key: strong_samples.samples[key] for key in shuffled_keys},
            "mirrors": dict(reversed(list(strong_samples.mirrors.items()))),
        }
    )
    rescored = engine.score(reordered)
    assert rescored.power_score == baseline.power_score
    assert rescored.normalized_power_score == baseline.normalized_power_score
    assert rescored.metric(MetricKind.NETWORK).raw == baseline.metric(MetricKind.NETWORK).raw
    assert rescored.issues == baseline.issues


def test_run_samples_in_order_and_collects_diagnostics(engine_config, host_facts) -> None:
    executor = _RecordingExecutor(_constant_trials())
    scorecard = BenchmarkEngine(engine_config, executor).run(host_facts)
    assert executor.order == [
        CPU_PROBE,
        MEMORY_PROBE,
        DISK_WRITE_PROBE,
        DISK_READ_PROBE,
        mirror_probe_name(0),
        mirror_probe_name(1),
        LOAD_PROBE,
    ]
    assert executor.cleaned is True
    assert scorecard.diagnostics.iops_4k == 15000.0
    assert scorecard.diagnostics.ping_ms == 0.9
    assert "Outbound HTTPS (443) blocked" in scorecard.issues
    assert scorecard.diagnostics.connectivity_pct == 50.0
    assert [item.url for item in scorecard.diagnostics.mirrors] == [MIRROR_A, MIRROR_B]
    assert scorecard.host == "bench-01"


def test_collect_returns_rescorable_samples(engine_config, host_facts) -> None:
    engine = BenchmarkEngine(engine_config, CallableProbeExecutor(_constant_trials()))
    samples = engine.collect(host_facts)
    assert samples.samples[CPU_PROBE].values == [9000.0, 9000.0, 9000.0]
    assert samples.samples[LOAD_PROBE].values == [0.2]
    assert list(samples.mirrors) == [MIRROR_A, MIRROR_B]
    restored = RecordedSamples.model_validate(samples.as_payload())
    assert engine.score(restored).power_score == engine.score(samples).power_score


def test_report_is_produced_when_every_probe_fails(engine_config, host_facts) -> None:
    def broken():
        raise ProbeError("tool missing")

    trials = {name: broken for name in _constant_trials()}
    scorecard = BenchmarkEngine(engine_config, CallableProbeExecutor(trials)).run(host_facts)
    assert all(scorecard.metric(kind).unmeasured for kind in SCORED_KINDS)
    assert {scorecard.metric(kind).rating for kind in SCORED_KINDS} == {Rating.POOR}
    assert scorecard.metric(MetricKind.LOAD).raw == 0.0
    assert scorecard.power_score == 40.0
    assert scorecard.stability_score == 60
    assert scorecard.issues[:5] == [
        "CPU probe failed on all 3 trials (reported as 0 / Poor)",
        "Memory probe failed on all 3 trials (reported as 0 / Poor)",
        "Disk write probe failed on all 3 trials (reported as 0 / Poor)",
        "Network probe failed on all 6 trials (reported as 0 / Poor)",
        "Load probe failed on all 1 trials (reported as 0 / Poor)",
    ]


def test_missing_probe_is_scored_as_not_run(engine_config, strong_samples) -> None:
    del strong_samples.samples[MEMORY_PROBE]
    scorecard = BenchmarkEngine(engine_config).score(strong_samples)
    memory = scorecard.metric(MetricKind.MEMORY)
    assert memory.unmeasured is True
    assert memory.rating is Rating.POOR
    assert "Memory probe was not run (reported as 0 / Poor)" in scorecard.issues


def test_exclude_failed_trials_changes_median(host_facts, strong_samples) -> None:
    strong_samples.samples[DISK_WRITE_PROBE] = SampleSet(
        probe=DISK_WRITE_PROBE, values=[600.0, 0.0, 0.0], failures=2
    )
    included = BenchmarkEngine(EngineConfig()).score(strong_samples)
    excluded = BenchmarkEngine(EngineConfig(exclude_failed_trials=True)).score(strong_samples)
    assert included.metric(MetricKind.DISK).raw == 0.0
    assert included.metric(MetricKind.DISK).rating is Rating.POOR
    assert excluded.metric(MetricKind.DISK).raw == 600.0
    assert excluded.metric(MetricKind.DISK).rating is Rating.EXCELLENT


def test_zero_load_from_failed_trial_is_not_excellent(engine_config, strong_samples) -> None:
    strong_samples.samples[LOAD_PROBE] = SampleSet(probe=LOAD_PROBE, values=[0.0], failures=1)
    scorecard = BenchmarkEngine(engine_config).score(strong_samples)
    load = scorecard.metric(MetricKind.LOAD)
    assert load.rating is Rating.POOR
    assert load.label == "Poor"
    assert scorecard.stability_score == 60


def test_quick_mode_runs_one_trial_per_probe(host_facts) -> None:
    config = EngineConfig(mode="quick", mirrors=[MIRROR_A], port_checks=[])
    trials = _constant_trials()
    del trials[mirror_probe_name(1)]
    samples = BenchmarkEngine(config, CallableProbeExecutor(trials)).collect(host_facts)
    assert all(len(sample_set.values) == 1 for sample_set in samples.samples.values())
    assert samples.mode == "quick"


def test_utc_timestamp_format() -> None:
    stamp = utc_timestamp()
    assert stamp.endswith("Z")
    assert len(stamp) == len("2026-10-16T12:00:00Z")


def test_host_facts_default_to_single_vcpu(engine_config) -> None:
    samples = RecordedSamples(
        samples={CPU_PROBE: SampleSet(probe=CPU_PROBE, values=[4000.0])},
    )
    scorecard = BenchmarkEngine(engine_config).score(samples)
    assert scorecard.host_facts == HostFacts()
    assert scorecard.metric(MetricKind.CPU).normalized == 100.0
    assert scorecard.cpu_per_core_eff_pct == 100.0
