# internal/exporter/collector.py

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Iterator

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily, Metric

from internal.collector.derive import CATALOG
from internal.collector.probe import Prober
from internal.models.records import ProbeSnapshot, Sample

CREATED_SUFFIX = "_created"


def snapshot_families(snapshot: ProbeSnapshot) -> list[GaugeMetricFamily]:
    by_metric: dict[str, list[Sample]] = defaultdict(list)
    for s in snapshot.samples:
        by_metric[s.metric].append(s)

    families: list[GaugeMetricFamily] = []
    for d in CATALOG:
        samples = by_metric.get(d.name)
        if not samples:
            continue
        family = GaugeMetricFamily(d.name, d.help, labels=[d.label])
        for s in sorted(samples, key=lambda x: x.label_value):
            family.add_metric([s.label_value], s.value)
        families.append(family)
    return families


class SnapshotCollector:
    """Exposes one finished snapshot followed by the lifetime metrics."""

    def __init__(self, snapshot: ProbeSnapshot, lifetime: Iterable = ()):
        self.snapshot = snapshot
        self.lifetime = tuple(lifetime)

    def collect(self) -> Iterator[Metric]:
        yield from snapshot_families(self.snapshot)
        for m in self.lifetime:
            for family in m.collect():
                # Lifetime series are exposed without their *_created timestamps.
                family.samples = [s for s in family.samples if not s.name.endswith(CREATED_SUFFIX)]
                yield family


class ProbeCollector:
    """Registry collector that runs a fresh probe on every collection."""

    def __init__(self, prober: Prober):
        self.prober = prober

    def collect(self) -> Iterator[Metric]:
        snapshot = self.prober.probe()
        yield from SnapshotCollector(snapshot, self.prober.lifetime_metrics()).collect()


def build_registry(prober: Prober) -> CollectorRegistry:
    registry = CollectorRegistry(auto_describe=False)
    registry.register(ProbeCollector(prober))
    return registry


def render(snapshot: ProbeSnapshot, lifetime: Iterable = ()) -> bytes:
    registry = CollectorRegistry(auto_describe=False)
    registry.register(SnapshotCollector(snapshot, lifetime))
    return generate_latest(registry)
