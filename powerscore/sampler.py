"""Fail-soft repeated trial sampling with per-trial timeouts."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable

from .models import Probe, SampleSet
from .probes import ProbeError, ProbeExecutor

logger = logging.getLogger(__name__)

Trial = Callable[[], float]


class TrialTimeout(RuntimeError):
    """Raised internally when a trial exceeds its timeout."""


def _log_event(level: int, event: str, message: str, *args, **context) -> None:
    """Emit module log with structured event fields."""
    extra = {"evt": event}
    for key, value in context.items():
        if value is None:
            continue
        extra[key] = str(value)
    logger.log(level, message, *args, extra=extra)


def _coerce_observation(raw: object) -> float:
    """Validate a trial result as a finite, non-negative float."""
    if isinstance(raw, bool):
        raise ValueError(f"trial returned a boolean ({raw!r})")
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"trial returned a non-numeric value ({raw!r})") from exc
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"trial returned a non-finite value ({raw!r})")
    if value < 0:
        raise ValueError(f"trial returned a negative value ({raw!r})")
    return value


def run_bounded(trial: Trial, timeout: float) -> object:
    """Run `trial` on a daemon thread and return its result within `timeout` seconds.

    A trial that does not finish in time is abandoned; its thread keeps running
    in the background and its result is discarded.
    """
    outcome: dict[str, object] = {}

    def target() -> None:
        try:
            outcome["value"] = trial()
        except BaseException as exc:  # noqa: BLE001 - re-raised on the caller thread
            outcome["error"] = exc

    worker = threading.Thread(target=target, name="probe-trial", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise TrialTimeout(f"trial exceeded {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]  # type: ignore[misc]
    return outcome.get("value")


def _failing_trial(error: ProbeError) -> Trial:
    def trial() -> float:
        raise error

    return trial


def sample_trials(probe: Probe, trial: Trial) -> SampleSet:
    """Run `probe.trials` trials of `trial`, recording 0 for every failed trial."""
    values: list[float] = []
    failures = 0
    for index in range(1, probe.trials + 1):
        started = time.monotonic()
        try:
            value = _coerce_observation(run_bounded(trial, probe.timeout_seconds))
        except Exception as exc:
            failures += 1
            values.append(0.0)
            _log_event(
                logging.WARNING,
                "PROBE_TRIAL_FAILED",
                "Probe %s trial %d/%d failed, recording 0: %s",
                probe.name,
                index,
                probe.trials,
                exc,
                probe=probe.name,
                trial=index,
                state="failed",
            )
            continue
        elapsed_ms = int((time.monotonic() - started) * 1000)
        values.append(value)
        _log_event(
            logging.INFO,
            "PROBE_TRIAL",
            "Probe %s trial %d/%d: %.2f %s (duration_ms=%d)",
            probe.name,
            index,
            probe.trials,
            value,
            probe.unit,
            elapsed_ms,
            probe=probe.name,
            trial=index,
            state="done",
        )
    return SampleSet(probe=probe.name, values=values, failures=failures)


class Sampler:
    """Collect sample sets for probes through an injected probe executor."""

    def __init__(self, executor: ProbeExecutor | None = None) -> None:
        self.executor = executor

    def sample(self, probe: Probe, trial: Trial | None = None) -> SampleSet:
        """Sample one probe; `trial` overrides the executor's callback."""
        if trial is None:
            if self.executor is None:
                raise ValueError(f"No trial callback or probe executor for {probe.name}")
            try:
                trial = self.executor.trial_for(probe)
            except ProbeError as exc:
                trial = _failing_trial(exc)
        _log_event(
            logging.INFO,
            "PROBE_START",
            "Sampling %s (%d trials, timeout=%gs)",
            probe.name,
            probe.trials,
            probe.timeout_seconds,
            probe=probe.name,
            state="running",
        )
        sample_set = sample_trials(probe, trial)
        if sample_set.all_failed:
            _log_event(
                logging.WARNING,
                "PROBE_FAILED",
                "Probe %s failed on all %d trials",
                probe.name,
                probe.trials,
                probe=probe.name,
                state="failed",
            )
        return sample_set


__all__ = [
    "Trial",
    "TrialTimeout",
    "run_bounded",
    "sample_trials",
    "Sampler",
]
