"""
Upload validation and normalization.

A selection is accepted as a whole: every file is validated and, for
HEIC/HEIF, converted to PNG before anything is accepted. The first failure
aborts the entire selection, so a single bad file means no images at all
rather than a partially accepted subset.
"""

from __future__ import annotations

import io
import logging
import mimetypes
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List

from PIL import Image

from .errors import ConversionFailure, UnsupportedFormat

logger = logging.getLogger(__name__)

JPEG = "image/jpeg"
PNG = "image/png"
HEIC = "image/heic"
HEIF = "image/heif"

ACCEPTED_MIME_TYPES = (JPEG, PNG, HEIC, HEIF)
CONVERTIBLE_MIME_TYPES = (HEIC, HEIF)

_EXTENSION_MIME = {
    ".jpg": JPEG,
    ".jpeg": JPEG,
    ".png": PNG,
    ".heic": HEIC,
    ".heif": HEIF,
}

Converter = Callable[[bytes], bytes]


@dataclass(frozen=True)
class UploadedFile:
    name: str
    mime_type: str
    data: bytes

    @classmethod
    def from_path(cls, path: Path) -> "UploadedFile":
        path = Path(path)
        mime_type = _EXTENSION_MIME.get(path.suffix.lower())
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=path.name, mime_type=mime_type, data=path.read_bytes())


@dataclass(frozen=True)
class SourceImage:
    name: str
    mime_type: str
    data: bytes
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


_HEIF_OPENER_REGISTERED = False


def _ensure_heif_opener() -> None:
    global _HEIF_OPENER_REGISTERED
    if _HEIF_OPENER_REGISTERED:
        return
    from pillow_heif import register_heif_opener

    register_heif_opener()
    _HEIF_OPENER_REGISTERED = True


def heif_to_png(data: bytes) -> bytes:
    _ensure_heif_opener()
    with Image.open(io.BytesIO(data)) as image:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def validate(file: UploadedFile) -> None:
    if file.mime_type not in ACCEPTED_MIME_TYPES:
        raise UnsupportedFormat(file.name, file.mime_type)


def normalize(file: UploadedFile, converter: Converter = heif_to_png) -> UploadedFile:
    if file.mime_type not in CONVERTIBLE_MIME_TYPES:
        return file
    try:
        data = converter(file.data)
    except Exception as exc:
        logger.error("HEIC conversion error for %s: %s", file.name, exc)
        raise ConversionFailure(file.name, str(exc) or exc.__class__.__name__) from exc
    name = re.sub(r"\.(heic|heif)$", ".png", file.name, flags=re.IGNORECASE)
    return UploadedFile(name=name, mime_type=PNG, data=data)


def accept_batch(
    files: Iterable[UploadedFile],
    converter: Converter = heif_to_png,
) -> List[SourceImage]:
    accepted: List[SourceImage] = []
    for file in files:
        validate(file)
        converted = normalize(file, converter)
        accepted.append(
            SourceImage(name=converted.name, mime_type=converted.mime_type, data=converted.data)
        )
    logger.info("Uploaded files: %s", [image.name for image in accepted])
    return accepted
