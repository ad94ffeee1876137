"""Score card renderings: JSON payload, Markdown, plain text and report files."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from .models import MetricKind, ScoreCard

logger = logging.getLogger(__name__)


def _mb(value: float) -> float:
    return round(value, 2)


def format_size_mb(size_mb: float) -> str:
    """Render a size given in MB as MB, GB or TB (1024-based)."""
    if size_mb >= 1024 * 1024:
        return f"{size_mb / 1024 / 1024:.2f} TB"
    if size_mb >= 1024:
        return f"{size_mb / 1024:.2f} GB"
    return f"{size_mb:.0f} MB"


def to_report(scorecard: ScoreCard) -> dict[str, Any]:
    """Return the JSON report payload for a score card."""
    metrics = scorecard.metrics
    cpu = metrics[MetricKind.CPU]
    memory = metrics[MetricKind.MEMORY]
    disk = metrics[MetricKind.DISK]
    network = metrics[MetricKind.NETWORK]
    load = metrics[MetricKind.LOAD]
    facts = scorecard.host_facts
    diagnostics = scorecard.diagnostics
    disk_read = diagnostics.disk_read

    normalized = {kind.value: round(metric.normalized, 1) for kind, metric in metrics.items()}
    normalized[MetricKind.LOAD.value] = float(scorecard.stability_score)
    return {
        "host": facts.host,
        "timestamp_utc": scorecard.timestamp_utc,
        "mode": scorecard.mode,
        "os": facts.os,
        "kernel": facts.kernel,
        "cpu_model": facts.cpu_model,
        "vcpu": facts.vcpus,
        "ram_mb": facts.ram_mb,
        "disk_total": format_size_mb(facts.disk_total_mb),
        "uptime": facts.uptime,
        "cpu": {
            "median": _mb(cpu.raw),
            "cv_pct": _mb(cpu.aggregate.cv_pct),
            "per_core_eff_pct": round(scorecard.cpu_per_core_eff_pct, 1),
        },
        "memory": {
            "median_mib_s": _mb(memory.raw),
            "cv_pct": _mb(memory.aggregate.cv_pct),
        },
        "disk": {
            "write_mb_s": _mb(disk.raw),
            "write_cv_pct": _mb(disk.aggregate.cv_pct),
            "read_mb_s": _mb(disk_read.median) if disk_read else 0.0,
            "read_cv_pct": _mb(disk_read.cv_pct) if disk_read else 0.0,
            "iops_4k": round(diagnostics.iops_4k),
        },
        "network": {
            "median_mb_s": _mb(network.raw),
            "best_mb_s": _mb(diagnostics.network_best_mb_s),
            "cv_pct": _mb(network.aggregate.cv_pct),
            "ping_ms": diagnostics.ping_ms,
            "ports": dict(diagnostics.ports),
            "mirrors": [
                {"mirror": item.url, "mb_s": _mb(item.median_mb_s)}
                for item in diagnostics.mirrors
            ],
        },
        "stability": {
            "load_ratio": _mb(load.raw),
            "score": scorecard.stability_score,
        },
        "normalized": normalized,
        "ratings": {kind.value: metric.label for kind, metric in metrics.items()},
        "power_score": round(scorecard.power_score, 1),
        "normalized_power_score": round(scorecard.normalized_power_score, 1),
        "verdict": scorecard.verdict.value,
        "gate": {
            "decision": scorecard.gate.decision,
            "passed": scorecard.gate.passed,
            "reasons": list(scorecard.gate.reasons),
        },
        "tier": scorecard.tier.value,
        "suitability": dict(scorecard.suitability),
        "weights": dict(scorecard.weights),
        "issues": list(scorecard.issues),
    }


def render_json(scorecard: ScoreCard) -> str:
    return json.dumps(to_report(scorecard), indent=2) + "\n"


def report_id(json_text: str) -> str:
    """Return the sha1 hex digest identifying a JSON report."""
    return hashlib.sha1(json_text.encode("utf-8")).hexdigest()


def render_markdown(scorecard: ScoreCard) -> str:
    """Render a Markdown report."""
    report = to_report(scorecard)
    facts = scorecard.host_facts
    cpu, memory, disk, network = (
        report["cpu"],
        report["memory"],
        report["disk"],
        report["network"],
    )
    ratings = report["ratings"]
    lines = [
        f"# Workstation Power Report: {facts.host}",
        f"- Timestamp (UTC): {scorecard.timestamp_utc}",
        f"- Mode: {scorecard.mode}",
        f"- OS/Kernel: {facts.os} | {facts.kernel}",
        f"- CPU: {facts.cpu_model} ({facts.vcpus} cores)",
        f"- RAM/Disk: {format_size_mb(facts.ram_mb)} | {report['disk_total']}",
        f"- Uptime: {facts.uptime}",
        "",
        "## Results",
        f"- CPU median: {cpu['median']} e/s (per-core {cpu['per_core_eff_pct']}%, "
        f"CV {cpu['cv_pct']}%) -> **{ratings['cpu']}**",
        f"- Memory median: {memory['median_mib_s']} MiB/s (CV {memory['cv_pct']}%) "
        f"-> **{ratings['memory']}**",
        f"- Disk write median: {disk['write_mb_s']} MB/s (CV {disk['write_cv_pct']}%) "
        f"-> **{ratings['disk']}**",
        f"- Disk read median: {disk['read_mb_s']} MB/s (CV {disk['read_cv_pct']}%)",
        f"- Random IOPS 4k: {disk['iops_4k']}",
        f"- Network: median {network['median_mb_s']} MB/s, best {network['best_mb_s']}, "
        f"CV {network['cv_pct']}%, ping {_ping(network['ping_ms'])} -> **{ratings['network']}**",
        f"- Stability: load ratio {report['stability']['load_ratio']} -> score "
        f"{report['stability']['score']} (**{ratings['load']}**)",
    ]
    if network["mirrors"]:
        lines.extend(["", "## Network mirrors"])
        lines.extend(f"- {item['mirror']}: {item['mb_s']} MB/s" for item in network["mirrors"])
    if network["ports"]:
        lines.extend(["", "## Outbound port checks"])
        lines.extend(f"- {target}: {status}" for target, status in network["ports"].items())

    normalized = report["normalized"]
    lines.extend(
        [
            "",
            "## Score",
            "- "
            + "  ".join(f"{name.upper()}={value}" for name, value in normalized.items()),
            f"- **Power Score: {report['power_score']} / 100**",
            f"- Normalized Power Score: {report['normalized_power_score']} / 100",
            f"- **Verdict: {report['verdict']}**",
            f"- Strict gate: {report['gate']['decision']}",
        ]
    )
    lines.extend(f"  - {reason}" for reason in report["gate"]["reasons"])
    lines.extend(["", f"## Suitability ({report['tier']} tier)"])
    lines.extend(f"- {name}: {status}" for name, status in report["suitability"].items())
    lines.extend(["", "## Issues"])
    lines.extend(f"- {issue}" for issue in report["issues"] or ["none"])
    return "\n".join(lines) + "\n"


def _ping(value: float | None) -> str:
    return "n/a" if value is None else f"{value:g} ms"


def render_text(scorecard: ScoreCard) -> str:
    """Render the console summary."""
    report = to_report(scorecard)
    cpu, memory, disk, network = (
        report["cpu"],
        report["memory"],
        report["disk"],
        report["network"],
    )
    rows = [
        ("CPU median:", f"{cpu['median']} e/s | per-core eff {cpu['per_core_eff_pct']}% "
         f"| CV {cpu['cv_pct']}%"),
        ("Memory median:", f"{memory['median_mib_s']} MiB/s | CV {memory['cv_pct']}%"),
        ("Disk write (med):", f"{disk['write_mb_s']} MB/s | CV {disk['write_cv_pct']}%"),
        ("Disk read (med):", f"{disk['read_mb_s']} MB/s | CV {disk['read_cv_pct']}%"),
        ("Rand IOPS 4k:", str(disk["iops_4k"])),
        ("Network median:", f"{network['median_mb_s']} MB/s | best {network['best_mb_s']} "
         f"| CV {network['cv_pct']}% | ping {_ping(network['ping_ms'])}"),
        ("Stability:", f"load ratio {report['stability']['load_ratio']} -> score "
         f"{report['stability']['score']}"),
    ]
    if network["ports"]:
        rows.append(
            ("Outbound:", "  ".join(f"{t}={s}" for t, s in network["ports"].items()))
        )
    separator = "-" * 62
    lines = ["=" * 19 + " FINAL SYSTEM ANALYSIS " + "=" * 20]
    lines.extend(f"{label:<26} {value}" for label, value in rows)
    lines.append(separator)
    lines.append(f"{'Power Score:':<26} {report['power_score']} / 100")
    lines.append(f"{'Normalized Score:':<26} {report['normalized_power_score']} / 100")
    lines.append(f"{'Verdict:':<26} {report['verdict']}")
    lines.append(f"{'Gate:':<26} {report['gate']['decision']}")
    lines.append(f"{'Tier:':<26} {report['tier']}")
    lines.append(separator)
    if report["issues"]:
        lines.append("ISSUES:")
        lines.extend(f" - {issue}" for issue in report["issues"])
    else:
        lines.append("ISSUES: none")
    lines.append("=" * 62)
    return "\n".join(lines) + "\n"


def report_basename(scorecard: ScoreCard) -> str:
    """Return `powerscore-<host>-<compact timestamp>`."""
    stamp = "".join(ch for ch in scorecard.timestamp_utc if ch.isalnum())
    return f"powerscore-{scorecard.host}-{stamp}"


def write_reports(scorecard: ScoreCard, output_dir: Path) -> tuple[Path, Path]:
    """Write `<base>.json` and `<base>.md` under `output_dir` and return their paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    base = report_basename(scorecard)
    json_path = output_dir / f"{base}.json"
    markdown_path = output_dir / f"{base}.md"
    json_text = render_json(scorecard)
    json_path.write_text(json_text, encoding="utf-8")
    markdown_path.write_text(render_markdown(scorecard), encoding="utf-8")
    logger.info(
        "Reports saved: %s, %s (report id %s)",
        json_path,
        markdown_path,
        report_id(json_text),
        extra={"evt": "REPORT_WRITTEN", "host": scorecard.host},
    )
    return json_path, markdown_path


__all__ = [
    "format_size_mb",
    "to_report",
    "render_json",
    "report_id",
    "render_markdown",
    "render_text",
    "report_basename",
    "write_reports",
]
