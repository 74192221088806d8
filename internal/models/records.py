# internal/models/records.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RunningState(str, Enum):
    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPED = "stopped"
    OTHER = "other"

    @classmethod
    def from_status(cls, status: str) -> "RunningState":
        s = (status or "").strip().lower()
        if s == "running":
            return cls.RUNNING
        if s == "restarting":
            return cls.RESTARTING
        if s in ("exited", "created", "dead"):
            return cls.STOPPED
        return cls.OTHER


@dataclass(frozen=True)
class ContainerRef:
    id: str
    name: str


@dataclass(frozen=True)
class ContainerRecord:
    id: str
    name: str
    state: RunningState
    start_time: float = 0.0
    restart_count: int = 0
    cpu_used: int = 0
    cpu_capacity: int = 0
    memory_used: int = 0
    network_in: int = 0
    network_out: int = 0
    disk_read: int = 0
    disk_write: int = 0


@dataclass(frozen=True)
class ImageRecord:
    tag: str
    size: int
    container_count: int


@dataclass(frozen=True)
class VolumeRecord:
    name: str
    size: int
    container_count: int


@dataclass(frozen=True)
class Sample:
    metric: str
    label: str  # "name" | "tag"
    label_value: str
    value: float


@dataclass(frozen=True)
class ProbeSnapshot:
    samples: tuple[Sample, ...]
    duration_seconds: float
    failures: int


@dataclass(frozen=True)
class Inventory:
    """
    Work set for one probe cycle.

    `images` / `volumes` are None when the family is disabled and an empty
    list when enumeration failed; `failures` counts failed family listings.
    """

    containers: list[ContainerRef] = field(default_factory=list)
    images: Optional[list[ImageRecord]] = None
    volumes: Optional[list[VolumeRecord]] = None
    failures: int = 0
