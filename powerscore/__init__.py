"""Powerscore package public API."""

from .config import ConfigError, EngineConfig, load_config
from .engine import BenchmarkEngine
from .models import RecordedSamples, ScoreCard
from .probes import CallableProbeExecutor, SystemProbeExecutor
from .report import render_json, render_markdown, write_reports
from .sampler import Sampler
from .stats import NoSamplesError

__all__ = [
    "EngineConfig",
    "ConfigError",
    "load_config",
    "BenchmarkEngine",
    "Sampler",
    "CallableProbeExecutor",
    "SystemProbeExecutor",
    "RecordedSamples",
    "ScoreCard",
    "NoSamplesError",
    "render_json",
    "render_markdown",
    "write_reports",
]
