# internal/scanner/fanout.py

from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Optional

from internal.models.records import ContainerRecord, ContainerRef
from internal.scanner.docker_api import DEFAULT_TIMEOUT, ProbeError, ProbeTimeout, RuntimeClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 10


class StatsAggregator:
    """
    Queries every container concurrently with at most `max_concurrency`
    queries in flight.

    Each query gets its own wall-clock deadline of `timeout` seconds from the
    moment it is started. A query still running at its deadline is counted as
    a timeout and abandoned, and its slot goes to the next queued container.
    A failed or timed out query is counted and left out of the result; its
    siblings carry on. `gather` returns once every query has settled or been
    abandoned.
    """

    def __init__(
        self,
        client: RuntimeClient,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")
        self.client = client
        self.max_concurrency = max_concurrency
        self.timeout = timeout

    def _wait_time(self, running: dict[Future, tuple[ContainerRef, float]]) -> Optional[float]:
        if self.timeout is None:
            return None
        nearest = min(deadline for _, deadline in running.values())
        return max(nearest - time.monotonic(), 0.0)

    def gather(self, refs: list[ContainerRef]) -> tuple[list[ContainerRecord], int]:
        if not refs:
            return [], 0

        records: list[ContainerRecord] = []
        failures = 0
        queued = deque(refs)
        running: dict[Future, tuple[ContainerRef, float]] = {}

        # Abandoned queries keep their thread until the socket gives up, so the
        # pool may need one thread per container to keep admitting new work.
        pool = ThreadPoolExecutor(max_workers=len(refs), thread_name_prefix="dockprobe-stats")
        try:
            while queued or running:
                while queued and len(running) < self.max_concurrency:
                    ref = queued.popleft()
                    deadline = time.monotonic() + self.timeout if self.timeout is not None else 0.0
                    running[pool.submit(self.client.container_record, ref)] = (ref, deadline)

                done, _ = wait(running, timeout=self._wait_time(running), return_when=FIRST_COMPLETED)
                for fut in done:
                    ref, _ = running.pop(fut)
                    try:
                        records.append(fut.result())
                    except ProbeTimeout as e:
                        failures += 1
                        logger.warning(f"Container {ref.name} ({ref.id[:12]}) timed out: {e}")
                    except ProbeError as e:
                        failures += 1
                        logger.warning(f"Container {ref.name} ({ref.id[:12]}) query failed: {e}")

                if self.timeout is None:
                    continue
                now = time.monotonic()
                for fut, (ref, deadline) in list(running.items()):
                    if deadline <= now:
                        del running[fut]
                        fut.cancel()
                        failures += 1
                        logger.warning(
                            f"Container {ref.name} ({ref.id[:12]}) timed out after {self.timeout:g}s"
                        )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return records, failures
