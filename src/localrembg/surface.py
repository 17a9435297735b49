from __future__ import annotations

import io
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import numpy as np
from PIL import Image

from .errors import SurfaceBusy


def decode_rgba(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as image:
        return np.array(image.convert("RGBA"), dtype=np.uint8)


def encode_png(pixels: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(buffer, format="PNG")
    return buffer.getvalue()


class RasterSurface:
    """
    The single RGBA working buffer shared by the batch pipeline and the mask editor.

    Only one operation may hold the surface at a time. ``session()`` fails fast
    with :class:`SurfaceBusy` instead of waiting for the current holder.
    """

    def __init__(self) -> None:
        self._pixels: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self._owner: Optional[str] = None

    @contextmanager
    def session(self, owner: str) -> Iterator["RasterSurface"]:
        if not self._lock.acquire(blocking=False):
            raise SurfaceBusy(f"Raster surface is in use by {self._owner}.")
        self._owner = owner
        try:
            yield self
        finally:
            self._owner = None
            self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise RuntimeError("Nothing has been drawn on the surface yet.")
        return self._pixels

    @property
    def size(self) -> Tuple[int, int]:
        height, width = self.pixels.shape[:2]
        return width, height

    def draw(self, data: bytes) -> np.ndarray:
        """Decode ``data`` at native resolution onto the surface."""
        decoded = decode_rgba(data)
        if self._pixels is not None and self._pixels.shape == decoded.shape:
            np.copyto(self._pixels, decoded)
        else:
            self._pixels = decoded
        return self._pixels

    def to_png(self) -> bytes:
        return encode_png(self.pixels)
