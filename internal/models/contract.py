# internal/models/contract.py

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNTAGGED = "<none>:<none>"


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


def _none_as_empty(value: Any, empty: Any) -> Any:
    return empty if value is None else value


# ----------------------------
# Containers
# ----------------------------
class ContainerSummary(_Wire):
    id: str = Field(alias="Id", min_length=1)
    names: list[str] = Field(alias="Names", default_factory=list)

    @field_validator("names", mode="before")
    @classmethod
    def _null_names(cls, v: Any) -> Any:
        return _none_as_empty(v, [])


class ContainerState(_Wire):
    status: str = Field(alias="Status")
    started_at: str = Field(alias="StartedAt", default="")

    @field_validator("started_at", mode="before")
    @classmethod
    def _null_started(cls, v: Any) -> Any:
        return _none_as_empty(v, "")


class ContainerInspect(_Wire):
    state: ContainerState = Field(alias="State")
    restart_count: int = Field(alias="RestartCount")


class CpuUsage(_Wire):
    total_usage: int


class CpuStats(_Wire):
    cpu_usage: CpuUsage
    system_cpu_usage: int = 0


class MemoryStats(_Wire):
    usage: int = 0
    stats: dict[str, int] = Field(default_factory=dict)

    @field_validator("stats", mode="before")
    @classmethod
    def _null_stats(cls, v: Any) -> Any:
        return _none_as_empty(v, {})


class NetworkStats(_Wire):
    rx_bytes: int
    tx_bytes: int


class BlkioEntry(_Wire):
    op: str
    value: int


class BlkioStats(_Wire):
    io_service_bytes_recursive: list[BlkioEntry] = Field(default_factory=list)

    @field_validator("io_service_bytes_recursive", mode="before")
    @classmethod
    def _null_entries(cls, v: Any) -> Any:
        return _none_as_empty(v, [])


class ContainerStats(_Wire):
    # The runtime also sends precpu_stats, the earlier of its two samples.
    # Only the current sample is read; counters are passed through as-is.
    cpu_stats: CpuStats
    memory_stats: MemoryStats
    networks: dict[str, NetworkStats] = Field(default_factory=dict)
    blkio_stats: BlkioStats = Field(default_factory=BlkioStats)

    @field_validator("networks", mode="before")
    @classmethod
    def _null_networks(cls, v: Any) -> Any:
        return _none_as_empty(v, {})

    @field_validator("blkio_stats", mode="before")
    @classmethod
    def _null_blkio(cls, v: Any) -> Any:
        return _none_as_empty(v, {})


# ----------------------------
# Disk usage (images, volumes)
# ----------------------------
class ImageUsage(_Wire):
    id: str = Field(alias="Id", min_length=1)
    repo_tags: list[str] = Field(alias="RepoTags", default_factory=list)
    size: int = Field(alias="Size")
    containers: int = Field(alias="Containers")

    @field_validator("repo_tags", mode="before")
    @classmethod
    def _null_tags(cls, v: Any) -> Any:
        return _none_as_empty(v, [])


class VolumeUsageData(_Wire):
    size: int = Field(alias="Size")
    ref_count: int = Field(alias="RefCount")


class VolumeUsage(_Wire):
    name: str = Field(alias="Name", min_length=1)
    usage_data: VolumeUsageData = Field(alias="UsageData")


class DataUsage(_Wire):
    images: list[ImageUsage] = Field(alias="Images", default_factory=list)
    volumes: list[VolumeUsage] = Field(alias="Volumes", default_factory=list)

    @field_validator("images", "volumes", mode="before")
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _none_as_empty(v, [])
