# internal/scanner/enumerate.py

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from internal.models.records import Inventory
from internal.scanner.docker_api import ProbeError, RuntimeClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityEnumerator:
    """Lists the entities to probe; each family fails on its own."""

    def __init__(self, client: RuntimeClient, collect_images: bool = False, collect_volumes: bool = False):
        self.client = client
        self.collect_images = collect_images
        self.collect_volumes = collect_volumes

    @staticmethod
    def _family(family: str, fetch: Callable[[], list[T]]) -> tuple[list[T], int]:
        try:
            return fetch(), 0
        except ProbeError as e:
            logger.warning(f"Listing {family} failed: {e}")
            return [], 1

    def enumerate(self) -> Inventory:
        containers, failures = self._family("containers", self.client.list_containers)

        images: Optional[list] = None
        if self.collect_images:
            images, failed = self._family("images", self.client.list_images)
            failures += failed

        volumes: Optional[list] = None
        if self.collect_volumes:
            volumes, failed = self._family("volumes", self.client.list_volumes)
            failures += failed

        logger.debug(
            f"Enumerated containers={len(containers)}"
            f" images={'off' if images is None else len(images)}"
            f" volumes={'off' if volumes is None else len(volumes)}"
            f" failures={failures}"
        )
        return Inventory(containers=containers, images=images, volumes=volumes, failures=failures)
