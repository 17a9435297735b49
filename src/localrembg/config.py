from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

RMBG_REPO_URL = "https://huggingface.co/briaai/RMBG-1.4/resolve/main"
RMBG_WEIGHTS_URL = f"{RMBG_REPO_URL}/onnx/model.onnx"

DEFAULT_CACHE_VERSION = "localrembg-cache-v1"
DEVICE_CHOICES = ("auto", "cuda", "cpu")


@dataclass(frozen=True)
class AssetSpec:
    url: str
    sha256: Optional[str] = None
    # Always fetched from the network, never stored or served from cache.
    network_only: bool = False


DEFAULT_ASSETS: Tuple[AssetSpec, ...] = (
    AssetSpec(RMBG_WEIGHTS_URL),
    AssetSpec(f"{RMBG_REPO_URL}/config.json"),
    AssetSpec(f"{RMBG_REPO_URL}/preprocessor_config.json"),
)


@dataclass
class CacheConfig:
    cache_dir: Path = field(default_factory=lambda: Path("~/.cache/localrembg").expanduser())
    version: str = DEFAULT_CACHE_VERSION
    assets: Tuple[AssetSpec, ...] = DEFAULT_ASSETS
    timeout: float = 60.0


@dataclass
class RemoverConfig:
    cache: CacheConfig = field(default_factory=CacheConfig)
    device: str = "auto"
    mask_threshold: Optional[float] = None
    brush_radius: float = 10.0
    restore_fill: Tuple[int, int, int] = (255, 255, 255)
    download_prefix: str = "bg-removed-"

    def __post_init__(self) -> None:
        if self.device not in DEVICE_CHOICES:
            raise ValueError(f"Unknown device '{self.device}'. Choices: {list(DEVICE_CHOICES)}")
        if self.mask_threshold is not None:
            self.mask_threshold = max(0.0, min(1.0, self.mask_threshold))
