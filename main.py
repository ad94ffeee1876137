"""CLI entrypoint for the powerscore benchmark engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from importlib import metadata
from pathlib import Path

from pydantic import ValidationError

from powerscore.config import ConfigError, RunMode, dump_config, load_config
from powerscore.engine import BenchmarkEngine
from powerscore.logging_utils import (
    ColoredConciseEventFormatter,
    ColoredEventFormatter,
    CompactingHandler,
    ConciseEventFormatter,
    EventContextFilter,
    EventFormatter,
)
from powerscore.models import RecordedSamples, ScoreCard
from powerscore.probes import SystemProbeExecutor
from powerscore.report import render_text, write_reports
from powerscore.stats import NoSamplesError
from powerscore.sysinfo import collect_host_facts

LOGGER = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _get_version() -> str:
    """Get the current version of powerscore."""
    try:
        return metadata.version("powerscore")
    except metadata.PackageNotFoundError:
        return "unknown"


def _add_logging_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    parser.add_argument(
        "--log-style",
        choices=["concise", "event"],
        default="concise",
        help="Terminal log style: concise (default) or event (full context)",
    )
    parser.add_argument("--color", action="store_true", help="Enable colored logging output")


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    version = _get_version()
    parser = argparse.ArgumentParser(
        prog="powerscore",
        description=f"Benchmark sampling and scoring engine (version {version})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"powerscore {version}",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Benchmark this host and write reports")
    run_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in RunMode],
        help="quick: 1 trial and smaller payloads; accurate: 3 trials (default)",
    )
    run_parser.add_argument("--config", type=Path, help="YAML engine configuration file")
    run_parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for the JSON and Markdown reports",
    )
    run_parser.add_argument(
        "--samples-out",
        type=Path,
        help="Also save the raw sample sets as JSON for offline rescoring",
    )
    _add_logging_flags(run_parser)

    score_parser = subparsers.add_parser("score", help="Rescore previously recorded samples")
    score_parser.add_argument(
        "--input", type=Path, required=True, help="Recorded samples JSON file"
    )
    score_parser.add_argument("--config", type=Path, help="YAML engine configuration file")
    score_parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for the JSON and Markdown reports (printed only when omitted)",
    )
    _add_logging_flags(score_parser)

    config_parser = subparsers.add_parser("config", help="Engine configuration utilities")
    _add_logging_flags(config_parser)
    config_subparsers = config_parser.add_subparsers(dest="config_command", required=True)
    show_parser = config_subparsers.add_parser(
        "show", help="Print the effective configuration as YAML"
    )
    show_parser.add_argument("--path", type=Path, help="YAML engine configuration file")
    validate_parser = config_subparsers.add_parser(
        "validate", help="Validate a YAML engine configuration file"
    )
    validate_parser.add_argument(
        "--path", type=Path, required=True, help="YAML engine configuration file"
    )

    return parser


def _configure_logging(level: str, use_color: bool = False, log_style: str = "concise") -> None:
    """Configure root logging format and level."""
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    stream = logging.StreamHandler()
    if use_color and log_style == "event":
        formatter = ColoredEventFormatter(_LOG_FORMAT)
    elif use_color and log_style == "concise":
        formatter = ColoredConciseEventFormatter(_LOG_FORMAT)
    elif log_style == "event":
        formatter = EventFormatter(_LOG_FORMAT)
    else:
        formatter = ConciseEventFormatter(_LOG_FORMAT)
    stream.setFormatter(formatter)
    handler = CompactingHandler(stream)
    handler.addFilter(EventContextFilter())
    root.addHandler(handler)


def _resolve_path(path: Path | None) -> Path | None:
    return path.expanduser().resolve() if path is not None else None


def _emit(scorecard: ScoreCard, output_dir: Path | None) -> None:
    print(render_text(scorecard), end="")
    if output_dir is None:
        return
    json_path, markdown_path = write_reports(scorecard, output_dir)
    print(f"Reports saved:\n - {json_path}\n - {markdown_path}")


def _handle_run_command(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    """Handle `powerscore run`."""
    config = load_config(_resolve_path(args.config), mode=args.mode)
    facts = collect_host_facts()
    executor = SystemProbeExecutor(config, vcpus=facts.vcpus)
    engine = BenchmarkEngine(config, executor)
    try:
        samples = engine.collect(facts)
    except KeyboardInterrupt:
        LOGGER.info("Benchmark interrupted (Ctrl+C); removing scratch files")
        executor.cleanup()
        return 130
    if args.samples_out is not None:
        target = _resolve_path(args.samples_out)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(samples.as_payload(), indent=2) + "\n", encoding="utf-8")
        LOGGER.info("Saved raw samples to %s", target)
    _emit(engine.score(samples), _resolve_path(args.output_dir))
    return 0


def _read_samples(path: Path, parser: argparse.ArgumentParser) -> RecordedSamples:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        parser.error(f"Cannot read samples file {path}: {exc}")
    except json.JSONDecodeError as exc:
        parser.error(f"Samples file {path} is not valid JSON: {exc}")
    try:
        return RecordedSamples.model_validate(payload)
    except ValidationError as exc:
        parser.error(f"Samples file {path} is not a recorded samples document: {exc}")


def _handle_score_command(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    """Handle `powerscore score`."""
    config = load_config(_resolve_path(args.config))
    samples = _read_samples(_resolve_path(args.input), parser)
    engine = BenchmarkEngine(config)
    _emit(engine.score(samples), _resolve_path(args.output_dir))
    return 0


def _handle_config_command(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    """Handle `powerscore config` subcommands."""
    path = _resolve_path(args.path)
    config = load_config(path)
    if args.config_command == "validate":
        LOGGER.info("Validated configuration file %s (mode=%s)", path, config.mode)
        print(f"valid: {path}")
        return 0
    if args.config_command == "show":
        print(dump_config(config), end="")
        return 0
    parser.error(f"Unsupported config command: {args.config_command}")
    return 2


def run_cli(argv: list[str] | None = None) -> int:
    """Execute CLI entrypoint logic and return process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(
        args.log_level,
        use_color=getattr(args, "color", False),
        log_style=getattr(args, "log_style", "concise"),
    )

    handlers = {
        "run": _handle_run_command,
        "score": _handle_score_command,
        "config": _handle_config_command,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.error(f"Unknown command: {args.command}")
    try:
        return handler(args, parser)
    except (ConfigError, NoSamplesError) as exc:
        parser.error(str(exc))
    return 2


if __name__ == "__main__":
    sys.exit(run_cli())
