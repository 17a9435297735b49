from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Tuple, Union

import numpy as np

from .errors import UnknownArtifact
from .handles import HandleRegistry
from .pipeline import ResultArtifact
from .surface import RasterSurface

logger = logging.getLogger(__name__)


class StrokeAction(str, enum.Enum):
    ERASE = "erase"
    RESTORE = "restore"


@dataclass(frozen=True)
class StrokeCommand:
    artifact_id: str
    action: StrokeAction
    x: float
    y: float
    radius: float = 10.0


def disc_mask(width: int, height: int, center_x: float, center_y: float, radius: float) -> np.ndarray:
    ys, xs = np.ogrid[:height, :width]
    return (xs - center_x) ** 2 + (ys - center_y) ** 2 <= radius ** 2


class MaskEditor:
    """
    Applies erase/restore brush strokes to result artifacts.

    Strokes always start from the artifact's current raster, so successive
    strokes accumulate. ``restore`` paints an opaque neutral fill; it does not
    bring back the original source pixels.
    """

    def __init__(
        self,
        surface: RasterSurface,
        handles: HandleRegistry,
        restore_fill: Tuple[int, int, int] = (255, 255, 255),
    ) -> None:
        self.surface = surface
        self.handles = handles
        self.restore_fill = tuple(int(channel) for channel in restore_fill)

    def apply_stroke(
        self,
        artifact: ResultArtifact,
        action: Union[StrokeAction, str],
        center_x: float,
        center_y: float,
        radius: float,
    ) -> ResultArtifact:
        action = StrokeAction(action)
        if radius < 0:
            raise ValueError(f"Brush radius must be non-negative, got {radius}.")

        with self.surface.session("editor"):
            pixels = self.surface.draw(artifact.png)
            height, width = pixels.shape[:2]
            disc = disc_mask(width, height, center_x, center_y, radius)
            if action is StrokeAction.ERASE:
                pixels[..., 3][disc] = 0
            else:
                pixels[disc] = (*self.restore_fill, 255)
            png = self.surface.to_png()

        artifact.replace(png, self.handles)
        logger.debug(
            "%s stroke on %s at (%s, %s) r=%s", action.value, artifact.source_name, center_x, center_y, radius
        )
        return artifact

    def dispatch(self, command: StrokeCommand, artifacts: Iterable[ResultArtifact]) -> ResultArtifact:
        for artifact in artifacts:
            if artifact.id == command.artifact_id:
                return self.apply_stroke(artifact, command.action, command.x, command.y, command.radius)
        raise UnknownArtifact(f"No artifact with id {command.artifact_id}.")
