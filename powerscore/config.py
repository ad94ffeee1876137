"""Engine configuration: weights, ceilings, thresholds and probe plans."""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .constants import (
    ACCURATE_TRIALS,
    CPU_PER_CORE_CEILING,
    CPU_TRIAL_TIMEOUT_SECONDS,
    DEFAULT_MIRRORS,
    DEFAULT_PORT_CHECKS,
    DISK_CEILING_MB_S,
    DISK_READ_TRIAL_TIMEOUT_SECONDS,
    DISK_WRITE_TRIAL_TIMEOUT_SECONDS,
    GATE_MINIMUM_SCORE,
    IOPS_TRIAL_TIMEOUT_SECONDS,
    LOAD_TRIAL_TIMEOUT_SECONDS,
    MEMORY_CEILING_MIB_S,
    MEMORY_TRIAL_TIMEOUT_SECONDS,
    NETWORK_CEILING_MB_S,
    NETWORK_TRIAL_TIMEOUT_SECONDS,
    PING_TIMEOUT_SECONDS,
    PORT_CHECK_TIMEOUT_SECONDS,
    QUICK_TRIALS,
    WEIGHT_TOLERANCE,
)
from .models import MetricKind, Probe
from .rating import DEFAULT_THRESHOLDS, IssueFloors, ThresholdTable


CPU_PROBE = "cpu_events_per_sec"
MEMORY_PROBE = "memory_mib_per_sec"
DISK_WRITE_PROBE = "disk_write_mb_s"
DISK_READ_PROBE = "disk_read_mb_s"
LOAD_PROBE = "load_ratio"


class ConfigError(ValueError):
    """Raised when engine configuration is invalid; always before sampling starts."""


class RunMode(StrEnum):
    """Named run modes."""

    QUICK = "quick"
    ACCURATE = "accurate"


class ScoreWeights(BaseModel):
    """Composite weight vector; must sum to 1.0."""

    model_config = ConfigDict(extra="forbid")

    cpu: float = Field(default=0.35, ge=0.0)
    memory: float = Field(default=0.15, ge=0.0)
    disk: float = Field(default=0.25, ge=0.0)
    network: float = Field(default=0.10, ge=0.0)
    stability: float = Field(default=0.15, ge=0.0)

    @model_validator(mode="after")
    def validate_sum(self) -> ScoreWeights:
        total = self.cpu + self.memory + self.disk + self.network + self.stability
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"weights must sum to 1.0 (got {total:.6f})")
        return self

    def for_kind(self, kind: MetricKind) -> float:
        """Return the weight applied to a metric kind (load maps to stability)."""
        if kind is MetricKind.LOAD:
            return self.stability
        return getattr(self, kind.value)

    def as_dict(self) -> dict[str, float]:
        return self.model_dump()


class Ceilings(BaseModel):
    """Raw values treated as 100% of scale by the normalizer."""

    model_config = ConfigDict(extra="forbid")

    cpu_per_core: float = Field(default=CPU_PER_CORE_CEILING, gt=0.0)
    memory_mib_s: float = Field(default=MEMORY_CEILING_MIB_S, gt=0.0)
    disk_mb_s: float = Field(default=DISK_CEILING_MB_S, gt=0.0)
    network_mb_s: float = Field(default=NETWORK_CEILING_MB_S, gt=0.0)


class ProbeSettings(BaseModel):
    """Per-probe timeout overrides."""

    model_config = ConfigDict(extra="forbid")

    cpu_timeout_seconds: float = Field(default=CPU_TRIAL_TIMEOUT_SECONDS, gt=0.0)
    memory_timeout_seconds: float = Field(default=MEMORY_TRIAL_TIMEOUT_SECONDS, gt=0.0)
    disk_write_timeout_seconds: float = Field(default=DISK_WRITE_TRIAL_TIMEOUT_SECONDS, gt=0.0)
    disk_read_timeout_seconds: float = Field(default=DISK_READ_TRIAL_TIMEOUT_SECONDS, gt=0.0)
    network_timeout_seconds: float = Field(default=NETWORK_TRIAL_TIMEOUT_SECONDS, gt=0.0)
    load_timeout_seconds: float = Field(default=LOAD_TRIAL_TIMEOUT_SECONDS, gt=0.0)
    iops_timeout_seconds: float = Field(default=IOPS_TRIAL_TIMEOUT_SECONDS, gt=0.0)
    ping_timeout_seconds: float = Field(default=PING_TIMEOUT_SECONDS, gt=0.0)
    port_timeout_seconds: float = Field(default=PORT_CHECK_TIMEOUT_SECONDS, gt=0.0)


class EngineConfig(BaseModel):
    """Full scoring engine configuration."""

    model_config = ConfigDict(extra="forbid")

    mode: RunMode = RunMode.ACCURATE
    trials: int | None = Field(default=None, ge=1)
    weights: ScoreWeights = Field(default_factory=ScoreWeights)
    ceilings: Ceilings = Field(default_factory=Ceilings)
    thresholds: dict[MetricKind, ThresholdTable] = Field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS)
    )
    issue_floors: IssueFloors = Field(default_factory=IssueFloors)
    probes: ProbeSettings = Field(default_factory=ProbeSettings)
    mirrors: list[str] = Field(default_factory=lambda: list(DEFAULT_MIRRORS))
    port_checks: list[tuple[str, int]] = Field(default_factory=lambda: list(DEFAULT_PORT_CHECKS))
    gate_minimum_score: float = Field(default=GATE_MINIMUM_SCORE, ge=0.0, le=100.0)
    exclude_failed_trials: bool = False

    @field_validator("thresholds", mode="before")
    @classmethod
    def merge_default_thresholds(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        merged: dict[Any, Any] = dict(DEFAULT_THRESHOLDS)
        for key, table in value.items():
            # load ratio tables are lower-is-better unless stated otherwise
            if key == MetricKind.LOAD and isinstance(table, dict):
                table = {"higher_is_better": False, **table}
            merged[key] = table
        return merged

    @model_validator(mode="after")
    def validate_tables(self) -> EngineConfig:
        missing = [kind.value for kind in MetricKind if kind not in self.thresholds]
        if missing:
            raise ValueError(f"thresholds missing for: {', '.join(missing)}")
        if self.thresholds[MetricKind.LOAD].higher_is_better:
            raise ValueError("load thresholds must be lower-is-better")
        return self

    @property
    def trials_per_probe(self) -> int:
        if self.trials is not None:
            return self.trials
        return QUICK_TRIALS if self.mode == RunMode.QUICK else ACCURATE_TRIALS

    @property
    def quick(self) -> bool:
        return self.mode == RunMode.QUICK

    def ceiling_for(self, kind: MetricKind, *, vcpus: int = 1) -> float | None:
        """Return the normalization ceiling for a metric kind; load has none."""
        if kind is MetricKind.CPU:
            return self.ceilings.cpu_per_core * max(1, vcpus)
        if kind is MetricKind.MEMORY:
            return self.ceilings.memory_mib_s
        if kind is MetricKind.DISK:
            return self.ceilings.disk_mb_s
        if kind is MetricKind.NETWORK:
            return self.ceilings.network_mb_s
        return None

    def build_probes(self, *, vcpus: int = 1) -> dict[str, Probe]:
        """Build the probe plan for a run, keyed by probe name."""
        trials = self.trials_per_probe
        settings = self.probes
        plan = [
            Probe(
                name=CPU_PROBE,
                unit="events/s",
                kind=MetricKind.CPU,
                trials=trials,
                timeout_seconds=settings.cpu_timeout_seconds,
                ceiling=self.ceiling_for(MetricKind.CPU, vcpus=vcpus),
            ),
            Probe(
                name=MEMORY_PROBE,
                unit="MiB/s",
                kind=MetricKind.MEMORY,
                trials=trials,
                timeout_seconds=settings.memory_timeout_seconds,
                ceiling=self.ceilings.memory_mib_s,
            ),
            Probe(
                name=DISK_WRITE_PROBE,
                unit="MB/s",
                kind=MetricKind.DISK,
                trials=trials,
                timeout_seconds=settings.disk_write_timeout_seconds,
                ceiling=self.ceilings.disk_mb_s,
            ),
            Probe(
                name=DISK_READ_PROBE,
                unit="MB/s",
                trials=trials,
                timeout_seconds=settings.disk_read_timeout_seconds,
            ),
            Probe(
                name=LOAD_PROBE,
                unit="load/vCPU",
                kind=MetricKind.LOAD,
                trials=1,
                timeout_seconds=settings.load_timeout_seconds,
            ),
        ]
        for index, url in enumerate(self.mirrors):
            plan.append(
                Probe(
                    name=mirror_probe_name(index),
                    unit="MB/s",
                    kind=MetricKind.NETWORK,
                    trials=trials,
                    timeout_seconds=settings.network_timeout_seconds,
                    ceiling=self.ceilings.network_mb_s,
                )
            )
        return {probe.name: probe for probe in plan}


def mirror_probe_name(index: int) -> str:
    """Return the probe name used for the mirror at `index`."""
    return f"network_mirror_{index}_mb_s"


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "$"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def config_from_payload(payload: dict[str, Any]) -> EngineConfig:
    """Validate a configuration mapping into an EngineConfig."""
    try:
        return EngineConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid engine configuration: {_validation_message(exc)}") from exc


def load_config(path: Path | None = None, **overrides: Any) -> EngineConfig:
    """Load configuration from a YAML file (or defaults) and apply overrides."""
    payload: dict[str, Any] = {}
    if path is not None:
        try:
            raw_text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc
        try:
            loaded = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML configuration document: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration must be a YAML mapping with top-level keys")
        payload.update(loaded)
    for key, value in overrides.items():
        if value is not None:
            payload[key] = value
    return config_from_payload(payload)


def dump_config(config: EngineConfig) -> str:
    """Render configuration as YAML text."""
    payload = json.loads(config.model_dump_json())
    return yaml.safe_dump(payload, sort_keys=False)


__all__ = [
    "CPU_PROBE",
    "MEMORY_PROBE",
    "DISK_WRITE_PROBE",
    "DISK_READ_PROBE",
    "LOAD_PROBE",
    "ConfigError",
    "RunMode",
    "ScoreWeights",
    "Ceilings",
    "ProbeSettings",
    "EngineConfig",
    "mirror_probe_name",
    "config_from_payload",
    "load_config",
    "dump_config",
]
