import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from powerscore.config import (  # noqa: E402
    CPU_PROBE,
    DISK_READ_PROBE,
    DISK_WRITE_PROBE,
    LOAD_PROBE,
    MEMORY_PROBE,
    EngineConfig,
)
from powerscore.models import HostFacts, RecordedSamples, SampleSet  # noqa: E402

MIRROR_A = "http://mirror-a.test/10mb.bin"
MIRROR_B = "http://mirror-b.test/10mb.bin"


@pytest.fixture()
def engine_config() -> EngineConfig:
    """Accurate-mode configuration with two synthetic mirrors."""
    return EngineConfig(mirrors=[MIRROR_A, MIRROR_B], port_checks=[])


@pytest.fixture()
def host_facts() -> HostFacts:
    return HostFacts(
        host="bench-01",
        os="Ubuntu 24.04 LTS",
        kernel="6.8.0-45-generic",
        cpu_model="AMD EPYC 7B13",
        vcpus=8,
        ram_mb=32000,
        disk_total_mb=200 * 1024,
        uptime="up 3 days",
    )


@pytest.fixture()
def strong_samples(host_facts: HostFacts) -> RecordedSamples:
    """Recorded samples of a host that rates Excellent on every metric."""
    return RecordedSamples(
        host_facts=host_facts,
        timestamp_utc="2026-10-16T12:00:00Z",
        samples={
            CPU_PROBE: SampleSet(probe=CPU_PROBE, values=[9000.0, 9100.0, 8950.0]),
            MEMORY_PROBE: SampleSet(probe=MEMORY_PROBE, values=[21000.0, 20500.0, 20800.0]),
            DISK_WRITE_PROBE: SampleSet(probe=DISK_WRITE_PROBE, values=[650.0, 640.0, 660.0]),
            DISK_READ_PROBE: SampleSet(probe=DISK_READ_PROBE, values=[900.0, 950.0, 920.0]),
            LOAD_PROBE: SampleSet(probe=LOAD_PROBE, values=[0.1]),
        },
        mirrors={
            MIRROR_A: SampleSet(probe="network_mirror_0_mb_s", values=[25.0, 26.0, 24.0]),
            MIRROR_B: SampleSet(probe="network_mirror_1_mb_s", values=[28.0, 27.5, 29.0]),
        },
        iops_4k=12000.0,
        ping_ms=1.2,
        ports={"google.com:80": "ok", "google.com:443": "ok"},
    )


def pytest_configure(config):  # pragma: no cover - pytest hook
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "system_probe: marks tests that run real benchmark tools (sysbench, dd, curl, ping)",
    )


def pytest_collection_modifyitems(config, items):  # pragma: no cover - pytest hook
    """Skip real system probe tests unless explicitly enabled."""
    if os.getenv("RUN_SYSTEM_PROBES") == "1" and os.getenv("GITHUB_ACTIONS") != "true":
        return
    skip_system = pytest.mark.skip(reason="set RUN_SYSTEM_PROBES=1 locally to run system probes")
    for item in items:
        if "system_probe" in item.keywords:
            item.add_marker(skip_system)
