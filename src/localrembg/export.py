from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List

from .pipeline import ResultArtifact

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "bg-removed-"

Downloader = Callable[[str, bytes], None]


class DirectoryDownloader:
    """Saves each download into ``output_dir`` under the requested file name."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)
        self.saved: List[Path] = []

    def __call__(self, filename: str, data: bytes) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        destination = self.output_dir / Path(filename).name
        destination.write_bytes(data)
        self.saved.append(destination)


def export_all(
    artifacts: Iterable[ResultArtifact],
    download: Downloader,
    prefix: str = DEFAULT_PREFIX,
) -> None:
    for artifact in artifacts:
        filename = f"{prefix}{artifact.source_name}"
        download(filename, artifact.png)
        logger.info("Exported %s", filename)
