from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Optional

import requests
from requests import Response
from tqdm import tqdm


def sha256_file(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def _write_response_to_file(
    response: Response,
    destination: Path,
    chunk_size: int,
) -> None:
    response.raise_for_status()
    total = int(response.headers.get("content-length", 0))
    total = total if total > 0 else None
    progress = tqdm(
        total=total,
        unit="B",
        unit_scale=True,
        desc=f"Caching {os.path.basename(destination)}",
        leave=False,
    )

    tmp_path = destination.with_suffix(destination.suffix + ".tmp")

    try:
        with tmp_path.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=chunk_size):
                if not chunk:
                    continue
                handle.write(chunk)
                progress.update(len(chunk))
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    finally:
        progress.close()
    tmp_path.replace(destination)


def download_file(
    session: requests.Session,
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    timeout: float = 60.0,
    chunk_size: int = 1024 * 1024,
) -> Path:
    """
    Stream a remote file to disk with optional checksum verification.

    Parameters
    ----------
    session: requests.Session
        Session used for the request, shared by every cached asset.
    url: str
        Remote URL to download.
    destination: Path
        Local destination path. Written atomically through a ``.tmp`` sibling.
    expected_sha256: Optional[str]
        Optional SHA-256 hex digest. When provided the file is verified after download.
    """

    destination.parent.mkdir(parents=True, exist_ok=True)

    with session.get(url, stream=True, timeout=timeout) as response:
        _write_response_to_file(response, destination, chunk_size)

    if expected_sha256 and sha256_file(destination) != expected_sha256.lower():
        destination.unlink(missing_ok=True)
        raise ValueError(
            f"Checksum mismatch for {url}. Expected {expected_sha256}."
        )

    return destination
