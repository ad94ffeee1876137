"""Probe executors: the capability interface and the system-tool implementation."""

from __future__ import annotations

import logging
import os
import re
import shutil
import socket
import subprocess
import tempfile
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Protocol

from .config import (
    CPU_PROBE,
    DISK_READ_PROBE,
    DISK_WRITE_PROBE,
    LOAD_PROBE,
    MEMORY_PROBE,
    EngineConfig,
    mirror_probe_name,
)
from .models import Probe

logger = logging.getLogger(__name__)

_SCRATCH_FILE_NAME = "powerscore_dd_test"
_FIO_SCRATCH_NAME = "powerscore_fio_test"
_DD_SIZE_MB = 256
_STRESS_SECONDS = 10
_QUICK_STRESS_SECONDS = 5
_EVENTS_PATTERN = re.compile(r"events per second:\s*([0-9]+(?:\.[0-9]+)?)")
_MEMORY_PATTERN = re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*(?:MiB|MB)/sec")
_RATE_PATTERN = re.compile(r"([0-9]+(?:[.,][0-9]+)?)\s*([kKMGT]?B)/s")
_FIO_BW_PATTERN = re.compile(r"\(([0-9]+(?:\.[0-9]+)?)\s*([kMG]B)/s\)")
_IOPS_PATTERN = re.compile(r"IOPS=([0-9]+(?:\.[0-9]+)?)(k?)")
_PING_PATTERN = re.compile(r"=\s*[0-9.]+/([0-9.]+)/[0-9.]+")
_RATE_TO_MB = {"B": 1e-6, "kB": 1e-3, "KB": 1e-3, "MB": 1.0, "GB": 1e3, "TB": 1e6}


class ProbeError(RuntimeError):
    """Raised by a trial that could not produce a measurement."""


class ProbeExecutor(Protocol):
    """Capability that turns a probe into a zero-argument trial callback."""

    def trial_for(self, probe: Probe) -> Callable[[], float]:
        """Return the callback that runs one trial of `probe`."""


class CallableProbeExecutor:
    """Probe executor backed by a mapping of probe names to callbacks."""

    def __init__(self, trials: Mapping[str, Callable[[], float]]) -> None:
        self.trials = dict(trials)

    def trial_for(self, probe: Probe) -> Callable[[], float]:
        try:
            return self.trials[probe.name]
        except KeyError:
            raise ProbeError(f"No trial registered for probe {probe.name}") from None


def parse_sysbench_cpu(output: str) -> float:
    """Extract events/sec from `sysbench cpu run` output."""
    match = _EVENTS_PATTERN.search(output)
    if not match:
        raise ProbeError("sysbench cpu output has no 'events per second' line")
    return float(match.group(1))


def parse_sysbench_memory(output: str) -> float:
    """Extract MiB/sec from `sysbench memory run` output (last occurrence)."""
    matches = _MEMORY_PATTERN.findall(output)
    if not matches:
        raise ProbeError("sysbench memory output has no MiB/sec figure")
    return float(matches[-1])


def parse_dd_rate(output: str) -> float:
    """Extract the transfer rate in MB/s from dd's summary line."""
    matches = _RATE_PATTERN.findall(output)
    if not matches:
        raise ProbeError("dd output has no transfer rate")
    number, unit = matches[-1]
    return float(number.replace(",", ".")) * _RATE_TO_MB[unit]


def parse_fio_bandwidth(output: str) -> float:
    """Extract bandwidth in MB/s from fio's group report."""
    match = _FIO_BW_PATTERN.search(output)
    if not match:
        raise ProbeError("fio output has no bandwidth figure")
    return float(match.group(1)) * _RATE_TO_MB[match.group(2)]


def parse_fio_iops(output: str) -> float:
    """Extract IOPS from fio output, expanding a `k` suffix."""
    match = _IOPS_PATTERN.search(output)
    if not match:
        raise ProbeError("fio output has no IOPS figure")
    value = float(match.group(1))
    return value * 1000 if match.group(2) else value


def parse_ping_avg(output: str) -> float:
    """Extract the average round-trip time in ms from ping's rtt summary."""
    for line in output.splitlines():
        if "rtt" in line or "round-trip" in line:
            match = _PING_PATTERN.search(line)
            if match:
                return float(match.group(1))
    raise ProbeError("ping output has no rtt summary")


def bytes_per_sec_to_mb(text: str) -> float:
    """Convert curl's `%{speed_download}` (bytes/sec) to MB/s (MiB based, two decimals)."""
    try:
        speed = float(text.strip() or "0")
    except ValueError as exc:
        raise ProbeError(f"curl returned a non-numeric speed: {text!r}") from exc
    return round(speed / 1024 / 1024, 2)


def run_command(cmd: list[str], *, timeout: float) -> str:
    """Run a tool and return combined stdout/stderr; failures raise ProbeError."""
    logger.debug("Executing command: %s", " ".join(cmd))
    try:
        process = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ProbeError(f"{cmd[0]} is not installed") from exc
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(f"{cmd[0]} timed out after {timeout:g}s") from exc
    output = process.stdout or ""
    if process.returncode != 0:
        tail = output.strip().splitlines()[-1:] or ["no output"]
        raise ProbeError(f"{cmd[0]} exited with code {process.returncode}: {tail[0]}")
    return output


def read_load_ratio(vcpus: int) -> float:
    """Return the 1-minute load average per vCPU, rounded to two decimals."""
    try:
        load_1m = os.getloadavg()[0]
    except OSError as exc:
        raise ProbeError(f"load average unavailable: {exc}") from exc
    return round(load_1m / max(1, vcpus), 2)


def check_port(host: str, port: int, *, timeout: float) -> str:
    """Return `ok` when a TCP connection to host:port succeeds, else `blocked`."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return "ok"
    except OSError:
        return "blocked"


def remaining_budget(deadline: float, tool: str) -> float:
    """Seconds left before `deadline`; raises ProbeError instead of starting `tool` late."""
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise ProbeError(f"trial time budget spent before {tool} could start")
    return remaining


class SystemProbeExecutor:
    """Run probes with sysbench, dd, fio, curl and ping as bounded subprocesses."""

    def __init__(
        self,
        config: EngineConfig,
        *,
        vcpus: int,
        scratch_dir: Path | None = None,
    ) -> None:
        self.config = config
        self.vcpus = max(1, vcpus)
        self.scratch_dir = scratch_dir or Path(tempfile.gettempdir())
        self.scratch_file = self.scratch_dir / _SCRATCH_FILE_NAME
        self._trials: dict[str, Callable[[Probe], float]] = {
            CPU_PROBE: self.cpu_events_per_sec,
            MEMORY_PROBE: self.memory_mib_per_sec,
            DISK_WRITE_PROBE: self.disk_write_mb_s,
            DISK_READ_PROBE: self.disk_read_mb_s,
            LOAD_PROBE: self.load_ratio_under_stress,
        }
        self._mirrors = {
            mirror_probe_name(index): url for index, url in enumerate(config.mirrors)
        }

    def trial_for(self, probe: Probe) -> Callable[[], float]:
        if probe.name in self._mirrors:
            url = self._mirrors[probe.name]
            return lambda: self.mirror_download_mb_s(probe, url)
        handler = self._trials.get(probe.name)
        if handler is None:
            raise ProbeError(f"No system trial for probe {probe.name}")
        return lambda: handler(probe)

    def cpu_events_per_sec(self, probe: Probe) -> float:
        seconds = 3 if self.config.quick else 5
        output = run_command(
            ["sysbench", "cpu", f"--threads={self.vcpus}", f"--time={seconds}", "run"],
            timeout=probe.timeout_seconds,
        )
        return parse_sysbench_cpu(output)

    def memory_mib_per_sec(self, probe: Probe) -> float:
        total = "128M" if self.config.quick else "256M"
        output = run_command(
            [
                "sysbench",
                "memory",
                "--memory-block-size=1M",
                f"--memory-total-size={total}",
                "run",
            ],
            timeout=probe.timeout_seconds,
        )
        return parse_sysbench_memory(output)

    def _dd_write(self, timeout: float, *flags: str) -> str:
        return run_command(
            [
                "dd",
                "if=/dev/zero",
                f"of={self.scratch_file}",
                "bs=1M",
                f"count={_DD_SIZE_MB}",
                *flags,
            ],
            timeout=timeout,
        )

    def disk_write_mb_s(self, probe: Probe) -> float:
        """dd with O_DIRECT, then dd with fdatasync, then fio; all within one trial budget."""
        deadline = time.monotonic() + probe.timeout_seconds
        try:
            return parse_dd_rate(
                self._dd_write(remaining_budget(deadline, "dd"), "oflag=direct")
            )
        except ProbeError as exc:
            logger.debug("Direct dd write failed (%s); retrying with fdatasync", exc)
        try:
            return parse_dd_rate(
                self._dd_write(remaining_budget(deadline, "dd"), "conv=fdatasync")
            )
        except ProbeError:
            if shutil.which("fio") is None:
                raise
        timeout = remaining_budget(deadline, "fio")
        output = run_command(
            [
                "fio",
                "--name=seqwrite",
                "--rw=write",
                "--bs=1M",
                f"--size={_DD_SIZE_MB}M",
                f"--filename={self.scratch_file}",
                "--ioengine=sync",
                "--group_reporting",
            ],
            timeout=timeout,
        )
        return parse_fio_bandwidth(output)

    def disk_read_mb_s(self, probe: Probe) -> float:
        deadline = time.monotonic() + probe.timeout_seconds
        if not self.scratch_file.exists():
            self._dd_write(remaining_budget(deadline, "dd"), "conv=fdatasync")
        output = run_command(
            ["dd", f"if={self.scratch_file}", "of=/dev/null", "bs=1M", f"count={_DD_SIZE_MB}"],
            timeout=remaining_budget(deadline, "dd"),
        )
        return parse_dd_rate(output)

    def load_ratio_under_stress(self, probe: Probe) -> float:
        """Load ratio read right after a stress-ng CPU burst (skipped when stress-ng is missing)."""
        deadline = time.monotonic() + probe.timeout_seconds
        if shutil.which("stress-ng") is None:
            logger.info("stress-ng not installed; reading load ratio without a stress burst")
        else:
            seconds = _QUICK_STRESS_SECONDS if self.config.quick else _STRESS_SECONDS
            try:
                run_command(
                    ["stress-ng", "--cpu", str(self.vcpus), "--timeout", f"{seconds}s"],
                    timeout=remaining_budget(deadline, "stress-ng"),
                )
            except ProbeError as exc:
                logger.warning(
                    "Stress burst failed: %s",
                    exc,
                    extra={"evt": "PROBE_FAILED", "probe": probe.name},
                )
        return read_load_ratio(self.vcpus)

    def mirror_download_mb_s(self, probe: Probe, url: str) -> float:
        cmd = [
            "curl",
            "-s",
            "-L",
            "-o",
            "/dev/null",
            "--max-time",
            f"{probe.timeout_seconds:g}",
            "-w",
            "%{speed_download}",
        ]
        if self.config.quick:
            cmd.extend(["-r", "0-10485759"])
        cmd.append(url)
        return bytes_per_sec_to_mb(run_command(cmd, timeout=probe.timeout_seconds))

    def iops_4k(self) -> float:
        """Random 4k read IOPS via fio; 0 when fio is unavailable or fails."""
        if shutil.which("fio") is None:
            return 0.0
        try:
            output = run_command(
                [
                    "fio",
                    "--name=rand4k",
                    "--rw=randread",
                    "--bs=4k",
                    "--iodepth=1",
                    "--size=128M",
                    f"--filename={self.scratch_dir / _FIO_SCRATCH_NAME}",
                    "--time_based",
                    "--runtime=8s",
                    "--group_reporting",
                ],
                timeout=self.config.probes.iops_timeout_seconds,
            )
            return parse_fio_iops(output)
        except ProbeError as exc:
            logger.warning("IOPS probe failed: %s", exc, extra={"evt": "PROBE_FAILED"})
            return 0.0
        finally:
            (self.scratch_dir / _FIO_SCRATCH_NAME).unlink(missing_ok=True)

    def ping_ms(self, target: str) -> float | None:
        """Average round-trip latency in ms, or None when ping is unavailable."""
        try:
            output = run_command(
                ["ping", "-c", "3", "-n", target],
                timeout=self.config.probes.ping_timeout_seconds,
            )
            return parse_ping_avg(output)
        except ProbeError as exc:
            logger.warning("Latency probe failed: %s", exc, extra={"evt": "PROBE_FAILED"})
            return None

    def port_checks(self) -> dict[str, str]:
        """Check every configured outbound host:port."""
        timeout = self.config.probes.port_timeout_seconds
        return {
            f"{host}:{port}": check_port(host, port, timeout=timeout)
            for host, port in self.config.port_checks
        }

    def cleanup(self) -> None:
        """Remove the disk scratch file."""
        self.scratch_file.unlink(missing_ok=True)


__all__ = [
    "ProbeError",
    "ProbeExecutor",
    "CallableProbeExecutor",
    "parse_sysbench_cpu",
    "parse_sysbench_memory",
    "parse_dd_rate",
    "parse_fio_bandwidth",
    "parse_fio_iops",
    "parse_ping_avg",
    "bytes_per_sec_to_mb",
    "run_command",
    "read_load_ratio",
    "check_port",
    "remaining_budget",
    "SystemProbeExecutor",
]
