"""Host facts gathered from the local system."""

from __future__ import annotations

import logging
import os
import platform
import shutil
import socket
from pathlib import Path

from .models import HostFacts

logger = logging.getLogger(__name__)

_PROC = Path("/proc")
_OS_RELEASE = Path("/etc/os-release")


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""


def os_pretty_name(os_release: str | None = None) -> str:
    """Return PRETTY_NAME from /etc/os-release, or the platform string."""
    text = _read_text(_OS_RELEASE) if os_release is None else os_release
    for line in text.splitlines():
        key, _, value = line.partition("=")
        if key.strip() == "PRETTY_NAME":
            return value.strip().strip('"') or "unknown"
    return platform.platform() or "unknown"


def cpu_model_name(cpuinfo: str | None = None) -> str:
    """Return the first `model name` from /proc/cpuinfo."""
    text = _read_text(_PROC / "cpuinfo") if cpuinfo is None else cpuinfo
    for line in text.splitlines():
        key, _, value = line.partition(":")
        if key.strip() == "model name":
            return " ".join(value.split()) or "unknown"
    return platform.processor() or "unknown"


def total_ram_mb(meminfo: str | None = None) -> int:
    """Return MemTotal from /proc/meminfo in MB (free -m semantics)."""
    text = _read_text(_PROC / "meminfo") if meminfo is None else meminfo
    for line in text.splitlines():
        if line.startswith("MemTotal:"):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdigit():
                return int(parts[1]) // 1024
    return 0


def format_uptime(seconds: float) -> str:
    """Render uptime like `uptime -p`: `up 2 days, 3 hours, 4 minutes`."""
    minutes_total = int(seconds // 60)
    days, remainder = divmod(minutes_total, 24 * 60)
    hours, minutes = divmod(remainder, 60)
    parts = []
    for amount, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if amount:
            parts.append(f"{amount} {unit}{'s' if amount != 1 else ''}")
    return "up " + (", ".join(parts) if parts else "0 minutes")


def uptime_text() -> str:
    raw = _read_text(_PROC / "uptime").split()
    if not raw:
        return "unknown"
    try:
        return format_uptime(float(raw[0]))
    except ValueError:
        return "unknown"


def collect_host_facts(root: str = "/") -> HostFacts:
    """Gather hostname, OS, kernel, CPU, RAM, root disk size and uptime."""
    try:
        disk_total_mb = shutil.disk_usage(root).total // (1024 * 1024)
    except OSError as exc:
        logger.warning("Disk size unavailable for %s: %s", root, exc)
        disk_total_mb = 0
    facts = HostFacts(
        host=socket.gethostname().split(".")[0] or "unknown",
        os=os_pretty_name(),
        kernel=platform.release() or "unknown",
        cpu_model=cpu_model_name(),
        vcpus=os.cpu_count() or 1,
        ram_mb=total_ram_mb(),
        disk_total_mb=disk_total_mb,
        uptime=uptime_text(),
    )
    logger.info(
        "Host %s: %s | kernel %s | %s (%d vCPU) | RAM %d MB",
        facts.host,
        facts.os,
        facts.kernel,
        facts.cpu_model,
        facts.vcpus,
        facts.ram_mb,
        extra={"evt": "HOST_FACTS", "host": facts.host},
    )
    return facts


__all__ = [
    "os_pretty_name",
    "cpu_model_name",
    "total_ram_mb",
    "format_uptime",
    "uptime_text",
    "collect_host_facts",
]
