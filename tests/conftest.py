"""
Pytest configuration and shared fixtures
"""
import copy
import threading

import pytest
from prometheus_client.parser import text_string_to_metric_families

from internal.models.records import (
    ContainerRecord,
    ContainerRef,
    ImageRecord,
    RunningState,
    VolumeRecord,
)
from internal.scanner.docker_api import ProbeTimeout, TransportError

WEB_ID = "a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4e5f60718293a4b5c6d7e8f9"
DB_ID = "0f9e8d7c6b5a49382716f5e4d3c2b1a00f9e8d7c6b5a49382716f5e4d3c2b1a0"

CONTAINERS_JSON = [
    {"Id": WEB_ID, "Names": ["/web"], "Image": "nginx:latest", "State": "running"},
    {"Id": DB_ID, "Names": ["/db"], "Image": "postgres:16", "State": "running"},
]

INSPECT_RUNNING = {
    "Id": WEB_ID,
    "Name": "/web",
    "RestartCount": 2,
    "State": {
        "Status": "running",
        "Running": True,
        "Restarting": False,
        "StartedAt": "2023-07-22T04:26:40.123456789Z",
        "FinishedAt": "0001-01-01T00:00:00Z",
    },
}

INSPECT_EXITED = {
    "Id": DB_ID,
    "Name": "/db",
    "RestartCount": 0,
    "State": {
        "Status": "exited",
        "Running": False,
        "Restarting": False,
        "StartedAt": "2023-07-22T04:26:40Z",
        "FinishedAt": "2023-07-23T00:00:00Z",
    },
}

STATS_JSON = {
    "read": "2023-07-22T05:00:00.000000000Z",
    "preread": "2023-07-22T04:59:59.000000000Z",
    "cpu_stats": {
        "cpu_usage": {"total_usage": 100, "usage_in_kernelmode": 40, "usage_in_usermode": 60},
        "system_cpu_usage": 400,
        "online_cpus": 4,
    },
    "precpu_stats": {
        "cpu_usage": {"total_usage": 90},
        "system_cpu_usage": 300,
    },
    "memory_stats": {
        "usage": 1200000,
        "limit": 8000000000,
        "stats": {"total_inactive_file": 151424, "cache": 200000},
    },
    "networks": {
        "eth0": {"rx_bytes": 1000, "tx_bytes": 2000, "rx_packets": 10, "tx_packets": 20},
        "eth1": {"rx_bytes": 24, "tx_bytes": 48, "rx_packets": 1, "tx_packets": 2},
    },
    "blkio_stats": {
        "io_service_bytes_recursive": [
            {"major": 8, "minor": 0, "op": "Read", "value": 4096},
            {"major": 8, "minor": 0, "op": "Write", "value": 8192},
            {"major": 8, "minor": 16, "op": "read", "value": 4},
            {"major": 8, "minor": 0, "op": "Total", "value": 12292},
        ]
    },
}

DF_JSON = {
    "LayersSize": 123456,
    "Images": [
        {"Id": "sha256:1111", "RepoTags": ["nginx:latest", "nginx:1.25"], "Size": 187000000, "Containers": 1},
        {"Id": "sha256:2222", "RepoTags": ["<none>:<none>"], "Size": 5000, "Containers": 0},
        {"Id": "sha256:3333", "RepoTags": None, "Size": 7000, "Containers": 2},
    ],
    "Containers": [],
    "Volumes": [
        {"Name": "pgdata", "Driver": "local", "UsageData": {"Size": 65536, "RefCount": 1}},
        {"Name": "cache", "Driver": "local", "UsageData": {"Size": 0, "RefCount": 0}},
    ],
}


@pytest.fixture
def inspect_running():
    return copy.deepcopy(INSPECT_RUNNING)


@pytest.fixture
def inspect_exited():
    return copy.deepcopy(INSPECT_EXITED)


@pytest.fixture
def stats_json():
    return copy.deepcopy(STATS_JSON)


@pytest.fixture
def df_json():
    return copy.deepcopy(DF_JSON)


@pytest.fixture
def web_record():
    return ContainerRecord(
        id=WEB_ID,
        name="web",
        state=RunningState.RUNNING,
        start_time=1690000000,
        restart_count=2,
        cpu_used=100,
        cpu_capacity=400,
        memory_used=1048576,
        network_in=1024,
        network_out=2048,
        disk_read=4100,
        disk_write=8192,
    )


class FakeRuntime:
    """Stands in for RuntimeClient; errors are raised per container id or per family."""

    def __init__(
        self,
        records=(),
        errors=None,
        images=(),
        volumes=(),
        list_error=None,
        image_error=None,
        volume_error=None,
    ):
        # errors: {container_id: (name, exception)}
        failing = dict(errors or {})
        self.records = {r.id: r for r in records}
        self.refs = [ContainerRef(id=r.id, name=r.name) for r in records]
        self.refs += [ContainerRef(id=cid, name=name) for cid, (name, _) in failing.items()]
        self.errors = {cid: err for cid, (_, err) in failing.items()}
        self.images = list(images)
        self.volumes = list(volumes)
        self.list_error = list_error
        self.image_error = image_error
        self.volume_error = volume_error
        self.calls = {"containers": 0, "images": 0, "volumes": 0, "records": 0}
        self._lock = threading.Lock()

    def list_containers(self):
        self.calls["containers"] += 1
        if self.list_error:
            raise self.list_error
        return list(self.refs)

    def container_record(self, ref):
        with self._lock:
            self.calls["records"] += 1
        if ref.id in self.errors:
            raise self.errors[ref.id]
        return self.records[ref.id]

    def list_images(self):
        self.calls["images"] += 1
        if self.image_error:
            raise self.image_error
        return list(self.images)

    def list_volumes(self):
        self.calls["volumes"] += 1
        if self.volume_error:
            raise self.volume_error
        return list(self.volumes)


@pytest.fixture
def fake_runtime(web_record):
    """One healthy container "web" and one container "db" whose query times out."""
    return FakeRuntime(
        records=[web_record],
        errors={DB_ID: ("db", ProbeTimeout(f"/containers/{DB_ID}/stats", "timed out"))},
        images=[
            ImageRecord(tag="nginx:latest", size=187000000, container_count=1),
            ImageRecord(tag="sha256:2222", size=5000, container_count=0),
        ],
        volumes=[VolumeRecord(name="pgdata", size=65536, container_count=1)],
    )


@pytest.fixture
def runtime_factory():
    return FakeRuntime


@pytest.fixture
def transport_error():
    return TransportError("/containers/json", "connection refused")


def _parse(text):
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    out = {}
    for family in text_string_to_metric_families(text):
        for s in family.samples:
            labels = tuple(sorted(s.labels.items()))
            out[(s.name, labels)] = s.value
    return out


@pytest.fixture
def parse_exposition():
    """Parse exposition text into {(sample_name, sorted_labels): value}."""
    return _parse
