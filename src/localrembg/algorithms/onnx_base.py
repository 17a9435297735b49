from __future__ import annotations

import logging
from typing import Dict, List, Tuple

import numpy as np
import onnxruntime as ort
import torch
import torch.nn.functional as F
from PIL import Image
from torchvision import transforms

from ..cache import AssetResponse
from .base import SegmentationModel

CUDA_PROVIDER = "CUDAExecutionProvider"
CPU_PROVIDER = "CPUExecutionProvider"


def cuda_available() -> bool:
    return CUDA_PROVIDER in ort.get_available_providers()


class ONNXSegmentationModel(SegmentationModel):
    """
    Shared ONNXRuntime-backed classifier implementation.
    """

    NORMALIZE_MEAN: Tuple[float, float, float] = (0.5, 0.5, 0.5)
    NORMALIZE_STD: Tuple[float, float, float] = (0.5, 0.5, 0.5)
    OUTPUT_SIGMOID: bool = True

    session: ort.InferenceSession
    input_name: str
    output_name: str

    def _load(self, weights: AssetResponse) -> None:
        model_source = weights.path.as_posix() if weights.path is not None else weights.content

        session_options = ort.SessionOptions()
        session_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        try:
            session = self._create_session(model_source, session_options, self.device)
        except Exception:
            if self.device == "cpu":
                raise
            logging.warning("CUDA provider failed to initialize; retrying on CPU.")
            self.device = "cpu"
            session = self._create_session(model_source, session_options, self.device)

        if self.device == "cuda" and CUDA_PROVIDER not in session.get_providers():
            logging.warning("onnxruntime did not initialize the CUDAExecutionProvider; running on CPU.")
            self.device = "cpu"

        self.session = session
        self.input_name = session.get_inputs()[0].name
        self.output_name = session.get_outputs()[0].name

    def _create_session(
        self,
        model_source,
        session_options: ort.SessionOptions,
        device: str,
    ) -> ort.InferenceSession:
        providers = self._build_providers(device)
        return ort.InferenceSession(
            model_source,
            sess_options=session_options,
            providers=[name for name, _ in providers],
            provider_options=[options for _, options in providers],
        )

    def _build_providers(self, device: str) -> List[Tuple[str, Dict[str, str]]]:
        providers: List[Tuple[str, Dict[str, str]]] = [(CPU_PROVIDER, {})]
        if device == "cuda":
            cuda_options = {
                "device_id": "0",
                "arena_extend_strategy": "kNextPowerOfTwo",
                "cudnn_conv_use_max_workspace": "1",
                "do_copy_in_default_stream": "1",
            }
            providers.insert(0, (CUDA_PROVIDER, cuda_options))
        return providers

    def preprocess(self, image: Image.Image) -> Tuple[torch.Tensor, Tuple[int, int]]:
        image = image.convert("RGB")
        transform = transforms.Compose(
            [
                transforms.Resize(
                    (self.DEFAULT_SIZE, self.DEFAULT_SIZE),
                    interpolation=transforms.InterpolationMode.BILINEAR,
                ),
                transforms.ToTensor(),
                transforms.Normalize(mean=self.NORMALIZE_MEAN, std=self.NORMALIZE_STD),
            ]
        )
        return transform(image).unsqueeze(0), (image.height, image.width)

    def normalize_output(self, alpha: torch.Tensor) -> torch.Tensor:
        if self.OUTPUT_SIGMOID:
            return torch.sigmoid(alpha)
        low, high = alpha.min(), alpha.max()
        if high - low <= 0:
            return torch.zeros_like(alpha)
        return (alpha - low) / (high - low)

    def predict_alpha(self, image: Image.Image) -> Image.Image:
        tensor, orig_size = self.preprocess(image)
        ort_inputs = {self.input_name: tensor.numpy().astype(np.float32)}
        outputs = self.session.run([self.output_name], ort_inputs)[0]
        alpha = self.normalize_output(torch.from_numpy(np.asarray(outputs, dtype=np.float32)))
        return self.postprocess(alpha, orig_size)

    def postprocess(self, alpha_pred: torch.Tensor, orig_size: Tuple[int, int]) -> Image.Image:
        alpha = alpha_pred.reshape(alpha_pred.shape[-2:])
        orig_h, orig_w = orig_size
        alpha = F.interpolate(
            alpha.unsqueeze(0).unsqueeze(0),
            size=(orig_h, orig_w),
            mode="bilinear",
            align_corners=False,
        )[0, 0]
        alpha = torch.nan_to_num(alpha, nan=0.0, posinf=1.0, neginf=0.0).clamp(0, 1)
        alpha_img = (alpha.numpy() * 255).round().astype("uint8")
        return Image.fromarray(alpha_img)
