# internal/scanner/docker_api.py

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

import docker
import requests
from docker.utils import version_lt
from pydantic import BaseModel, ValidationError

from internal.models.contract import (
    UNTAGGED,
    ContainerInspect,
    ContainerStats,
    ContainerSummary,
    DataUsage,
    ImageUsage,
    MemoryStats,
)
from internal.models.records import (
    ContainerRecord,
    ContainerRef,
    ImageRecord,
    RunningState,
    VolumeRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_SOCKET = "/var/run/docker.sock"
DEFAULT_TIMEOUT = 15.0
MIN_API_VERSION = "1.25"

M = TypeVar("M", bound=BaseModel)


class ProbeError(Exception):
    def __init__(self, endpoint: str, reason: str):
        super().__init__(f"{endpoint}: {reason}")
        self.endpoint = endpoint
        self.reason = reason


class TransportError(ProbeError):
    pass


class DecodeError(ProbeError):
    pass


class ProbeTimeout(ProbeError, TimeoutError):
    pass


def _display_name(summary: ContainerSummary) -> str:
    if summary.names:
        name = summary.names[0].strip()
        if len(name) > 1:
            return name.lstrip("/")
    return summary.id[:12]


_FRACTION = re.compile(r"\.(\d+)")


def _parse_started_at(value: str) -> int:
    """
    Seconds since epoch for an RFC 3339 timestamp, 0 when unset.

    The runtime reports nanoseconds and `0001-01-01T00:00:00Z` for
    containers that never started.
    """
    s = (value or "").strip()
    if not s:
        return 0
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    s = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    ts = int(dt.timestamp())
    return ts if ts > 0 else 0


def _memory_used(mem: MemoryStats) -> int:
    # cgroup v1 reports total_inactive_file, v2 inactive_file
    inactive = mem.stats.get("total_inactive_file", mem.stats.get("inactive_file", 0))
    return max(mem.usage - inactive, 0)


def _image_tag(image: ImageUsage) -> str:
    if image.repo_tags:
        tag = image.repo_tags[0].strip()
        if tag and tag != UNTAGGED:
            return tag
    return image.id


class RuntimeClient:
    """
    Read-only client for the Docker Engine API over its UNIX socket.

    Every operation performs one request and either returns decoded records
    or raises a ProbeError subclass. Nothing is retried.
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET,
        timeout: float = DEFAULT_TIMEOUT,
        pool_size: int = 10,
        version: str = "auto",
    ):
        self.socket_path = socket_path
        try:
            self._api = docker.APIClient(
                base_url=f"unix://{socket_path}",
                version=version,
                timeout=timeout,
                max_pool_size=pool_size,
            )
        except docker.errors.DockerException as e:
            raise TransportError("/version", str(e)) from e

        self.api_version = self._api.api_version
        if version_lt(self.api_version, MIN_API_VERSION):
            raise TransportError(
                "/version", f"API version {self.api_version} is older than the required {MIN_API_VERSION}"
            )

    # ----------------------------
    # Plumbing
    # ----------------------------
    def _call(self, endpoint: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        logger.debug(f"GET {endpoint}")
        try:
            return fn(*args, **kwargs)
        except (requests.exceptions.Timeout, TimeoutError) as e:
            raise ProbeTimeout(endpoint, f"timed out: {e}") from e
        except ValueError as e:
            raise DecodeError(endpoint, f"invalid JSON: {e}") from e
        except (requests.exceptions.RequestException, docker.errors.DockerException, OSError) as e:
            raise TransportError(endpoint, str(e)) from e

    @staticmethod
    def _decode(endpoint: str, model: type[M], payload: Any) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(endpoint, f"unexpected response shape: {e.error_count()} error(s): {e}") from e

    def _data_usage(self) -> DataUsage:
        return self._decode("/system/df", DataUsage, self._call("/system/df", self._api.df))

    # ----------------------------
    # Operations
    # ----------------------------
    def ping(self) -> None:
        self._call("/_ping", self._api.ping)

    def list_containers(self) -> list[ContainerRef]:
        endpoint = "/containers/json"
        payload = self._call(endpoint, self._api.containers, all=True)
        if not isinstance(payload, list):
            raise DecodeError(endpoint, f"expected a list, got {type(payload).__name__}")
        refs: list[ContainerRef] = []
        for item in payload:
            summary = self._decode(endpoint, ContainerSummary, item)
            refs.append(ContainerRef(id=summary.id, name=_display_name(summary)))
        return refs

    def inspect_container(self, container_id: str) -> ContainerInspect:
        endpoint = f"/containers/{container_id}/json"
        return self._decode(endpoint, ContainerInspect, self._call(endpoint, self._api.inspect_container, container_id))

    def container_stats(self, container_id: str) -> ContainerStats:
        endpoint = f"/containers/{container_id}/stats"
        payload = self._call(endpoint, self._api.stats, container_id, stream=False)
        return self._decode(endpoint, ContainerStats, payload)

    def container_record(self, ref: ContainerRef) -> ContainerRecord:
        inspect = self.inspect_container(ref.id)
        state = RunningState.from_status(inspect.state.status)
        start_time = _parse_started_at(inspect.state.started_at)

        if state is not RunningState.RUNNING:
            # Stopped containers have no live counters to report.
            return ContainerRecord(
                id=ref.id,
                name=ref.name,
                state=state,
                start_time=start_time,
                restart_count=inspect.restart_count,
            )

        stats = self.container_stats(ref.id)
        blkio = stats.blkio_stats.io_service_bytes_recursive
        return ContainerRecord(
            id=ref.id,
            name=ref.name,
            state=state,
            start_time=start_time,
            restart_count=inspect.restart_count,
            cpu_used=stats.cpu_stats.cpu_usage.total_usage,
            cpu_capacity=stats.cpu_stats.system_cpu_usage,
            memory_used=_memory_used(stats.memory_stats),
            network_in=sum(n.rx_bytes for n in stats.networks.values()),
            network_out=sum(n.tx_bytes for n in stats.networks.values()),
            disk_read=sum(e.value for e in blkio if e.op.lower() == "read"),
            disk_write=sum(e.value for e in blkio if e.op.lower() == "write"),
        )

    def list_images(self) -> list[ImageRecord]:
        return [
            ImageRecord(tag=_image_tag(i), size=i.size, container_count=i.containers)
            for i in self._data_usage().images
        ]

    def list_volumes(self) -> list[VolumeRecord]:
        return [
            VolumeRecord(name=v.name, size=v.usage_data.size, container_count=v.usage_data.ref_count)
            for v in self._data_usage().volumes
        ]

    def close(self) -> None:
        self._api.close()
