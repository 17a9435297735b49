from __future__ import annotations

__all__ = [
    "RemoverError",
    "UnsupportedFormat",
    "ConversionFailure",
    "ModelLoadFailure",
    "ModelUnavailable",
    "InferenceFailure",
    "CacheUnavailable",
    "SurfaceBusy",
    "UnknownArtifact",
]


class RemoverError(Exception):
    """Base class for every error raised by localrembg."""


class UnsupportedFormat(RemoverError):
    def __init__(self, name: str, mime_type: str) -> None:
        super().__init__(f"{name}: unsupported image type '{mime_type}'")
        self.name = name
        self.mime_type = mime_type


class ConversionFailure(RemoverError):
    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Failed to convert {name}: {reason}")
        self.name = name
        self.reason = reason


class ModelLoadFailure(RemoverError):
    pass


class ModelUnavailable(RemoverError):
    """classify() was called while the model is not Ready."""


class InferenceFailure(RemoverError):
    pass


class CacheUnavailable(RemoverError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Asset {key} is not cached and the network is unavailable.")
        self.key = key


class SurfaceBusy(RemoverError):
    pass


class UnknownArtifact(RemoverError):
    pass
