from __future__ import annotations

from ..config import RMBG_WEIGHTS_URL
from .onnx_base import ONNXSegmentationModel

__all__ = ["RMBG14Segmentation"]


class RMBG14Segmentation(ONNXSegmentationModel):
    MODEL_NAME = "rmbg-1.4"
    WEIGHTS_URL = RMBG_WEIGHTS_URL
    DEFAULT_SIZE = 1024
    NORMALIZE_STD = (1.0, 1.0, 1.0)
    # RMBG-1.4 emits unbounded logits that are min-max scaled per image.
    OUTPUT_SIGMOID = False
