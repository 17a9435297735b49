from .base import SegmentationModel
from .onnx_base import ONNXSegmentationModel, cuda_available
from .rmbg import RMBG14Segmentation

__all__ = [
    "SegmentationModel",
    "ONNXSegmentationModel",
    "RMBG14Segmentation",
    "cuda_available",
]
