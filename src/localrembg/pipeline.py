from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

import numpy as np
from PIL import Image

from .errors import InferenceFailure, ModelUnavailable, SurfaceBusy
from .handles import DisplayHandle, HandleRegistry
from .ingest import SourceImage
from .lifecycle import ModelLifecycle
from .surface import RasterSurface

logger = logging.getLogger(__name__)


@dataclass
class ResultArtifact:
    source_name: str
    png: bytes
    width: int
    height: int
    handle: DisplayHandle
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def replace(self, png: bytes, handles: HandleRegistry) -> None:
        """Swap in a new raster and hand the superseded display handle back."""
        previous = self.handle
        if not handles.is_live(previous):
            raise ValueError(f"Display handle {previous.url} was already released.")
        self.handle = handles.create(png)
        self.png = png
        handles.release(previous)


@dataclass
class BatchResult:
    artifacts: List[ResultArtifact] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


def punch_alpha(pixels: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Zero the alpha of every pixel whose mask value is falsy; RGB is left untouched."""
    pixels[..., 3][~mask.astype(bool)] = 0
    return pixels


def align_mask(mask, width: int, height: int) -> np.ndarray:
    if mask is None:
        raise InferenceFailure("Invalid mask data from model.")
    mask = np.asarray(mask)
    if mask.ndim >= 2 and mask.shape[-2:] != (height, width):
        raise InferenceFailure(
            f"Mask shape {mask.shape} does not match a {width}x{height} image."
        )
    if mask.size != width * height:
        raise InferenceFailure(
            f"Mask has {mask.size} values for a {width}x{height} image."
        )
    return mask.reshape(height, width)


class BatchMattingPipeline:
    """
    Runs the classifier over a batch of images, one image at a time.

    Every image is decoded onto the shared raster surface, classified,
    alpha-punched and encoded before the next one starts. A failure is
    recorded against the image name and the batch moves on.
    """

    def __init__(self, surface: RasterSurface, handles: HandleRegistry) -> None:
        self.surface = surface
        self.handles = handles
        self._busy = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def process_batch(self, images: Iterable[SourceImage], model: ModelLifecycle) -> BatchResult:
        if not model.ready:
            raise ModelUnavailable("AI model not loaded.")
        if not self._busy.acquire(blocking=False):
            raise SurfaceBusy("A batch is already running.")

        result = BatchResult()
        try:
            with self.surface.session("batch"):
                for image in images:
                    try:
                        artifact = self._process_image(image, model)
                    except Exception as exc:
                        logger.exception("Error processing %s", image.name)
                        result.errors[image.name] = str(exc) or exc.__class__.__name__
                        continue
                    result.artifacts.append(artifact)
        finally:
            self._busy.release()

        logger.info(
            "Processed %d images, %d failed", len(result.artifacts), len(result.errors)
        )
        return result

    def _process_image(self, image: SourceImage, model: ModelLifecycle) -> ResultArtifact:
        logger.info("Processing %s...", image.name)
        pixels = self.surface.draw(image.data)
        width, height = self.surface.size

        try:
            mask = model.classify(Image.fromarray(pixels).convert("RGB"))
        except InferenceFailure:
            raise
        except Exception as exc:
            raise InferenceFailure(str(exc) or exc.__class__.__name__) from exc

        punch_alpha(pixels, align_mask(mask, width, height))
        png = self.surface.to_png()
        artifact = ResultArtifact(
            source_name=image.name,
            png=png,
            width=width,
            height=height,
            handle=self.handles.create(png),
        )
        logger.info("Processed %s successfully.", image.name)
        return artifact
