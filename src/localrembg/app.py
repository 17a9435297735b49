from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .config import RemoverConfig
from .editor import MaskEditor, StrokeCommand
from .errors import (
    ConversionFailure,
    ModelLoadFailure,
    SurfaceBusy,
    UnknownArtifact,
    UnsupportedFormat,
)
from .export import Downloader, export_all
from .handles import HandleRegistry
from .ingest import Converter, SourceImage, UploadedFile, accept_batch, heif_to_png
from .lifecycle import ModelLifecycle, ModelState
from .pipeline import BatchMattingPipeline, BatchResult, ResultArtifact
from .surface import RasterSurface

logger = logging.getLogger(__name__)

INVALID_UPLOAD_MESSAGE = "Please upload valid image files (JPG, PNG, HEIC, HEIF)."
NOT_LOADED_MESSAGE = "AI model not loaded. Please wait and try again."
NO_IMAGES_MESSAGE = "Please upload at least one image."


class RemoverApp:
    """
    Application state for one session: model readiness, the current upload,
    the current results and the single user-facing error message.
    """

    def __init__(
        self,
        model: ModelLifecycle,
        config: Optional[RemoverConfig] = None,
        converter: Converter = heif_to_png,
    ) -> None:
        self.config = config or RemoverConfig()
        self.model = model
        self.converter = converter
        self.handles = HandleRegistry()
        self.surface = RasterSurface()
        self.pipeline = BatchMattingPipeline(self.surface, self.handles)
        self.editor = MaskEditor(self.surface, self.handles, self.config.restore_fill)
        self.images: List[SourceImage] = []
        self.results: List[ResultArtifact] = []
        self.error: Optional[str] = None

    def start(self) -> ModelState:
        state = self.model.load()
        try:
            self.model.raise_for_failure()
        except ModelLoadFailure as exc:
            self.error = f"Failed to load AI model: {exc}"
        return state

    @property
    def can_process(self) -> bool:
        return self.model.ready and not self.pipeline.busy and not self.surface.busy

    def upload(self, files: Iterable[UploadedFile]) -> bool:
        self.error = None
        try:
            images = accept_batch(files, self.converter)
        except UnsupportedFormat as exc:
            logger.warning("Rejected upload: %s", exc)
            self.error = INVALID_UPLOAD_MESSAGE
            return False
        except ConversionFailure as exc:
            self.error = str(exc)
            return False

        self.images = images
        self._release_results()
        return True

    def remove_background(self) -> Optional[BatchResult]:
        if not self.model.ready:
            self.error = NOT_LOADED_MESSAGE
            return None
        if not self.images:
            self.error = NO_IMAGES_MESSAGE
            return None

        self.error = None
        try:
            result = self.pipeline.process_batch(self.images, self.model)
        except SurfaceBusy as exc:
            self.error = str(exc)
            return None

        for name, reason in result.errors.items():
            self.error = f"Error processing {name}: {reason}"
        self._release_results()
        self.results = result.artifacts
        return result

    def apply_stroke(self, command: StrokeCommand) -> Optional[ResultArtifact]:
        try:
            return self.editor.dispatch(command, self.results)
        except (UnknownArtifact, SurfaceBusy, ValueError) as exc:
            self.error = str(exc)
            return None

    def download_all(self, download: Downloader) -> None:
        export_all(self.results, download, self.config.download_prefix)

    def _release_results(self) -> None:
        for artifact in self.results:
            self.handles.release(artifact.handle)
        self.results = []
