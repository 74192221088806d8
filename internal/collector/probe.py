# internal/collector/probe.py

from __future__ import annotations

import logging
import time
from enum import Enum

from prometheus_client import Counter, Histogram

from internal.collector.derive import derive_samples
from internal.models.records import ProbeSnapshot
from internal.scanner.enumerate import EntityEnumerator
from internal.scanner.fanout import StatsAggregator

logger = logging.getLogger(__name__)

# 1s .. 64s
PROBE_BUCKETS = tuple(float(2**n) for n in range(7))


class ProbeStage(str, Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    AGGREGATING = "aggregating"
    DERIVING = "deriving"
    DONE = "done"


class Prober:
    """
    Runs one enumerate -> aggregate -> derive cycle per call to `probe`.

    The duration histogram and the failure counter live for the whole
    process and are the only state shared between cycles. Both are
    thread-safe, so overlapping scrapes may call `probe` concurrently.
    `stage` reports where the most recently started cycle currently is.
    """

    def __init__(self, enumerator: EntityEnumerator, aggregator: StatsAggregator):
        self.enumerator = enumerator
        self.aggregator = aggregator
        self.stage = ProbeStage.IDLE
        self.duration = Histogram(
            "docker_probe_duration_seconds",
            "How long it takes to query Docker for the complete data set. Includes failed requests.",
            buckets=PROBE_BUCKETS,
            registry=None,
        )
        self.failures = Counter(
            "docker_probe_failures_total",
            "The number of times any individual Docker query failed (because of a timeout or other reasons).",
            registry=None,
        )

    def lifetime_metrics(self) -> tuple[Histogram, Counter]:
        return self.duration, self.failures

    def _enter(self, stage: ProbeStage) -> None:
        logger.debug(f"Probe stage: {stage.value}")
        self.stage = stage

    def probe(self) -> ProbeSnapshot:
        self._enter(ProbeStage.IDLE)
        started = time.perf_counter()

        self._enter(ProbeStage.ENUMERATING)
        inventory = self.enumerator.enumerate()
        failures = inventory.failures

        self._enter(ProbeStage.AGGREGATING)
        records, failed = self.aggregator.gather(inventory.containers)
        failures += failed

        self._enter(ProbeStage.DERIVING)
        samples = derive_samples(records, inventory.images, inventory.volumes)

        elapsed = time.perf_counter() - started
        self.duration.observe(elapsed)
        if failures:
            self.failures.inc(failures)

        self._enter(ProbeStage.DONE)
        logger.debug(
            f"Probe {self.stage.value}: containers={len(records)}/{len(inventory.containers)}"
            f" samples={len(samples)} failures={failures} elapsed={elapsed:.3f}s"
        )
        return ProbeSnapshot(samples=tuple(samples), duration_seconds=elapsed, failures=failures)
