from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DisplayHandle:
    url: str
    data: bytes


class HandleRegistry:
    """
    Tracks display handles handed out to the rendering surface.

    Each handle is released exactly once; releasing it again is an error.
    """

    def __init__(self, scheme: str = "blob:localrembg") -> None:
        self._scheme = scheme
        self._live: Dict[str, DisplayHandle] = {}
        self._lock = threading.Lock()

    def create(self, data: bytes) -> DisplayHandle:
        handle = DisplayHandle(url=f"{self._scheme}/{uuid.uuid4().hex}", data=data)
        with self._lock:
            self._live[handle.url] = handle
        return handle

    def release(self, handle: DisplayHandle) -> None:
        with self._lock:
            if self._live.pop(handle.url, None) is None:
                raise ValueError(f"Display handle {handle.url} was already released.")
        logger.debug("Released %s", handle.url)

    def is_live(self, handle: DisplayHandle) -> bool:
        with self._lock:
            return handle.url in self._live

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)
