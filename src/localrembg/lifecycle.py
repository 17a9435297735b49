from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Callable, Optional

import numpy as np
from PIL import Image

from .cache import AssetCacheManager
from .config import RemoverConfig
from .errors import ModelLoadFailure, ModelUnavailable

logger = logging.getLogger(__name__)

ModelLoader = Callable[[str], Any]


class ModelState(enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def select_device(
    preference: str = "auto", has_accelerator: Optional[Callable[[], bool]] = None
) -> str:
    """Prefer the accelerated backend when it is available, else the portable one."""
    if preference != "auto":
        return preference
    if has_accelerator is None:
        from .algorithms.onnx_base import cuda_available

        has_accelerator = cuda_available
    return "cuda" if has_accelerator() else "cpu"


class ModelLifecycle:
    """
    Owns the single classifier instance and its readiness state.

    ``load()`` runs once; a failed load is terminal and is never retried.
    """

    def __init__(
        self,
        loader: ModelLoader,
        device: str = "auto",
        has_accelerator: Optional[Callable[[], bool]] = None,
    ) -> None:
        self._loader = loader
        self._preference = device
        self._has_accelerator = has_accelerator
        self._model: Any = None
        self._lock = threading.Lock()
        self.state = ModelState.UNLOADED
        self.failure_reason: Optional[str] = None
        self.device: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.state is ModelState.READY

    def load(self) -> ModelState:
        with self._lock:
            if self.state is not ModelState.UNLOADED:
                return self.state
            self.state = ModelState.LOADING

        try:
            device = select_device(self._preference, self._has_accelerator)
            logger.info("Loading segmentation model on %s", device)
            model = self._loader(device)
        except Exception as exc:
            self.failure_reason = str(exc) or exc.__class__.__name__
            self.state = ModelState.FAILED
            logger.error("Model loading error: %s", self.failure_reason)
            return self.state

        self._model = model
        self.device = getattr(model, "device", device)
        self.state = ModelState.READY
        logger.info("Model loaded successfully on %s", self.device)
        return self.state

    def raise_for_failure(self) -> None:
        if self.state is ModelState.FAILED:
            raise ModelLoadFailure(self.failure_reason)

    def classify(self, image: Image.Image) -> np.ndarray:
        if self.state is not ModelState.READY:
            raise ModelUnavailable(f"Model is {self.state.value}, not ready.")
        return self._model.classify(image)


def cached_loader(assets: AssetCacheManager, build: ModelLoader) -> ModelLoader:
    """Populate the active cache version before ``build`` runs."""

    def load(device: str):
        missing = assets.populate()
        if missing:
            logger.warning("Loading with %d assets missing from the offline cache", len(missing))
        return build(device)

    return load


def rmbg_loader(config: RemoverConfig, assets: AssetCacheManager) -> ModelLoader:
    def build(device: str):
        from .algorithms.rmbg import RMBG14Segmentation

        return RMBG14Segmentation(assets, device=device, mask_threshold=config.mask_threshold)

    return cached_loader(assets, build)


_LIFECYCLE: Optional[ModelLifecycle] = None


def get_model_lifecycle(
    config: Optional[RemoverConfig] = None,
    assets: Optional[AssetCacheManager] = None,
) -> ModelLifecycle:
    """Return the process-wide lifecycle, creating it on first use."""
    global _LIFECYCLE
    if _LIFECYCLE is None:
        config = config or RemoverConfig()
        assets = assets or AssetCacheManager(config.cache)
        _LIFECYCLE = ModelLifecycle(rmbg_loader(config, assets), device=config.device)
    return _LIFECYCLE
