# internal/collector/derive.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from internal.models.records import (
    ContainerRecord,
    ImageRecord,
    RunningState,
    Sample,
    VolumeRecord,
)


@dataclass(frozen=True)
class MetricDef:
    name: str
    help: str
    label: str


_STATE_VALUES = {
    RunningState.RUNNING: 1.0,
    RunningState.RESTARTING: 0.5,
}


def running_state_value(state: RunningState) -> float:
    return _STATE_VALUES.get(state, 0.0)


CONTAINER_METRICS: tuple[tuple[MetricDef, Callable[[ContainerRecord], float]], ...] = (
    (
        MetricDef(
            "docker_container_cpu_capacity_total",
            "All potential CPU usage available to a container, in unspecified units, averaged for all "
            "logical CPUs usable by the container. Start point of measurement is undefined - only "
            "relative values should be used in analytics.",
            "name",
        ),
        lambda c: c.cpu_capacity,
    ),
    (
        MetricDef(
            "docker_container_cpu_used_total",
            "Accumulated CPU usage of a container, in unspecified units, averaged for all logical CPUs "
            "usable by the container.",
            "name",
        ),
        lambda c: c.cpu_used,
    ),
    (MetricDef("docker_container_memory_used_bytes", "Memory usage of a container.", "name"), lambda c: c.memory_used),
    (
        MetricDef(
            "docker_container_network_in_bytes",
            "Total bytes received by the container's network interfaces.",
            "name",
        ),
        lambda c: c.network_in,
    ),
    (
        MetricDef(
            "docker_container_network_out_bytes",
            "Total bytes sent by the container's network interfaces.",
            "name",
        ),
        lambda c: c.network_out,
    ),
    (
        MetricDef("docker_container_disk_read_bytes", "Total bytes read from disk by a container.", "name"),
        lambda c: c.disk_read,
    ),
    (
        MetricDef("docker_container_disk_write_bytes", "Total bytes written to disk by a container.", "name"),
        lambda c: c.disk_write,
    ),
    (
        MetricDef(
            "docker_container_restart_count",
            "Number of times the runtime has restarted this container without explicit user action, "
            "since the container was last started.",
            "name",
        ),
        lambda c: c.restart_count,
    ),
    (
        MetricDef(
            "docker_container_start_time_seconds",
            "Timestamp indicating when the container was started. Does not get reset by automatic restarts.",
            "name",
        ),
        lambda c: c.start_time,
    ),
    (
        MetricDef(
            "docker_container_running_state",
            "Whether the container is running (1), restarting (0.5) or stopped (0).",
            "name",
        ),
        lambda c: running_state_value(c.state),
    ),
)

IMAGE_METRICS: tuple[tuple[MetricDef, Callable[[ImageRecord], float]], ...] = (
    (
        MetricDef("docker_image_container_count", "The number of containers based on an image.", "tag"),
        lambda i: i.container_count,
    ),
    (MetricDef("docker_image_size_bytes", "The size of an image in bytes.", "tag"), lambda i: i.size),
)

VOLUME_METRICS: tuple[tuple[MetricDef, Callable[[VolumeRecord], float]], ...] = (
    (
        MetricDef("docker_volume_container_count", "The number of containers using a volume.", "name"),
        lambda v: v.container_count,
    ),
    (MetricDef("docker_volume_size_bytes", "Size of a volume in bytes.", "name"), lambda v: v.size),
)

# Render order of the snapshot families.
CATALOG: tuple[MetricDef, ...] = tuple(d for d, _ in CONTAINER_METRICS + IMAGE_METRICS + VOLUME_METRICS)


def container_samples(record: ContainerRecord) -> list[Sample]:
    return [Sample(d.name, d.label, record.name, float(get(record))) for d, get in CONTAINER_METRICS]


def image_samples(record: ImageRecord) -> list[Sample]:
    return [Sample(d.name, d.label, record.tag, float(get(record))) for d, get in IMAGE_METRICS]


def volume_samples(record: VolumeRecord) -> list[Sample]:
    return [Sample(d.name, d.label, record.name, float(get(record))) for d, get in VOLUME_METRICS]


def derive_samples(
    containers: Iterable[ContainerRecord],
    images: Optional[Iterable[ImageRecord]] = None,
    volumes: Optional[Iterable[VolumeRecord]] = None,
) -> list[Sample]:
    out: list[Sample] = []
    for c in containers:
        out.extend(container_samples(c))
    for i in images or ():
        out.extend(image_samples(i))
    for v in volumes or ():
        out.extend(volume_samples(v))
    return out
