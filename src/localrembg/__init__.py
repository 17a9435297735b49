"""
Offline background removal toolkit.

This package removes photo backgrounds entirely on the local machine: a
cached RMBG-1.4 ONNX classifier produces a per-pixel mask, background pixels
are made transparent, and results can be corrected with erase/restore brush
strokes before export.
"""

from .app import RemoverApp
from .cache import AssetCacheManager
from .config import CacheConfig, RemoverConfig
from .editor import MaskEditor, StrokeAction, StrokeCommand
from .lifecycle import ModelLifecycle, ModelState, get_model_lifecycle
from .pipeline import BatchMattingPipeline, ResultArtifact, punch_alpha

__all__ = [
    "AssetCacheManager",
    "BatchMattingPipeline",
    "CacheConfig",
    "MaskEditor",
    "ModelLifecycle",
    "ModelState",
    "RemoverApp",
    "RemoverConfig",
    "ResultArtifact",
    "StrokeAction",
    "StrokeCommand",
    "get_model_lifecycle",
    "punch_alpha",
]
