from __future__ import annotations

import abc
from typing import ClassVar, Optional

import numpy as np
from PIL import Image

from ..cache import AssetCacheManager, AssetResponse
from ..utils.downloads import sha256_file


class SegmentationModel(abc.ABC):
    """
    Abstract base class for foreground/background classifiers.

    Weights are resolved through the asset cache so that a model which was
    cached once keeps loading without network access.
    """

    MODEL_NAME: ClassVar[str]
    WEIGHTS_URL: ClassVar[str]
    WEIGHTS_SHA256: ClassVar[Optional[str]] = None
    DEFAULT_SIZE: ClassVar[int] = 1024

    def __init__(
        self,
        assets: AssetCacheManager,
        device: str = "cpu",
        mask_threshold: Optional[float] = None,
    ) -> None:
        self.device = device
        self.mask_threshold = mask_threshold
        self._load(self.ensure_weights(assets))

    @classmethod
    def ensure_weights(cls, assets: AssetCacheManager) -> AssetResponse:
        response = assets.resolve(cls.WEIGHTS_URL).raise_for_unavailable()
        if cls.WEIGHTS_SHA256 and response.path is not None:
            if sha256_file(response.path) != cls.WEIGHTS_SHA256.lower():
                raise ValueError(
                    f"Checksum mismatch for {cls.MODEL_NAME} weights. Expected {cls.WEIGHTS_SHA256}."
                )
        return response

    @abc.abstractmethod
    def _load(self, weights: AssetResponse) -> None:
        ...

    @abc.abstractmethod
    def predict_alpha(self, image: Image.Image) -> Image.Image:
        """Return an ``L`` mode alpha matte at the native resolution of ``image``."""

    def classify(self, image: Image.Image) -> np.ndarray:
        alpha = self.predict_alpha(image.convert("RGB"))
        mask = np.array(alpha, dtype=np.uint8)
        if self.mask_threshold is not None:
            mask[mask < round(self.mask_threshold * 255)] = 0
        return mask
