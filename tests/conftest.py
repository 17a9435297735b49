"""
Shared fixtures: synthetic images, a fake classifier and a fake HTTP session.
"""

import io
from typing import Callable, Dict, List, Optional, Set, Union

import numpy as np
import pytest
import requests
from PIL import Image

from localrembg.handles import HandleRegistry
from localrembg.ingest import SourceImage
from localrembg.lifecycle import ModelLifecycle
from localrembg.surface import RasterSurface


def make_rgb(width: int, height: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def make_png(width: int = 16, height: int = 12, seed: int = 0) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(make_rgb(width, height, seed)).save(buffer, format="PNG")
    return buffer.getvalue()


def make_source(name: str, width: int = 16, height: int = 12, seed: int = 0) -> SourceImage:
    return SourceImage(name=name, mime_type="image/png", data=make_png(width, height, seed))


def left_half_mask(image: Image.Image) -> np.ndarray:
    mask = np.zeros((image.height, image.width), dtype=np.uint8)
    mask[:, : image.width // 2] = 255
    return mask


class FakeClassifier:
    def __init__(
        self,
        mask_fn: Callable[[Image.Image], np.ndarray] = left_half_mask,
        fail_on_calls: Optional[Set[int]] = None,
    ) -> None:
        self.mask_fn = mask_fn
        self.fail_on_calls = fail_on_calls or set()
        self.calls = 0
        self.device = "cpu"

    def classify(self, image: Image.Image) -> np.ndarray:
        call = self.calls
        self.calls += 1
        if call in self.fail_on_calls:
            raise RuntimeError("classifier exploded")
        return self.mask_fn(image)


class FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code
        self.headers = {"content-length": str(len(content))}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


class FakeSession:
    """Serves canned payloads; ``offline`` makes every request fail."""

    def __init__(self, payloads: Dict[str, Union[bytes, int]]) -> None:
        self.payloads = dict(payloads)
        self.requests: List[str] = []
        self.offline = False

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.requests.append(url)
        if self.offline:
            raise requests.ConnectionError("network unreachable")
        payload = self.payloads.get(url)
        if payload is None:
            return FakeResponse(b"", status_code=404)
        if isinstance(payload, int):
            return FakeResponse(b"", status_code=payload)
        return FakeResponse(payload)


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def ready_model(classifier):
    lifecycle = ModelLifecycle(lambda device: classifier, device="cpu")
    lifecycle.load()
    return lifecycle


@pytest.fixture
def surface():
    return RasterSurface()


@pytest.fixture
def handles():
    return HandleRegistry()
