"""
Versioned on-disk cache for the assets needed to run without network access.

Every asset listed in :class:`~localrembg.config.CacheConfig` is stored under
the active version tag. Lookups only ever consult the active version, and
:meth:`AssetCacheManager.activate` removes every other version, so a bump of
the version tag invalidates the previous generation in bulk.

Population is best-effort: an asset that fails to download is logged and
reported back, but the remaining assets are still cached. Callers that need a
strict offline guarantee must check the list returned by ``populate()``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import requests

from .config import AssetSpec, CacheConfig
from .errors import CacheUnavailable
from .utils.downloads import download_file, sha256_file

logger = logging.getLogger(__name__)

UNAVAILABLE_STATUS = 503


@dataclass(frozen=True)
class CacheEntry:
    key: str
    version: str
    path: Path

    @property
    def content(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class AssetResponse:
    key: str
    status: int
    source: str
    body: bytes = b""
    path: Optional[Path] = None

    @property
    def content(self) -> bytes:
        if self.path is not None:
            return self.path.read_bytes()
        return self.body

    @property
    def ok(self) -> bool:
        return self.source != "unavailable" and 200 <= self.status < 300

    def raise_for_unavailable(self) -> "AssetResponse":
        if not self.ok:
            raise CacheUnavailable(self.key)
        return self


def _version_dirname(version: str) -> str:
    readable = re.sub(r"[^A-Za-z0-9._-]", "_", version)
    digest = hashlib.sha256(version.encode("utf-8")).hexdigest()[:12]
    return f"{readable}-{digest}"


def _entry_filename(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]


class AssetCacheManager:
    INDEX_NAME = "index.json"

    def __init__(
        self,
        config: CacheConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.root = Path(config.cache_dir)
        self.version = config.version
        self.session = session or requests.Session()
        self._specs: Dict[str, AssetSpec] = {spec.url: spec for spec in config.assets}
        self._lock = threading.RLock()
        self._index: Dict[str, Dict[str, str]] = self._load_index()

    @property
    def index_path(self) -> Path:
        return self.root / self.INDEX_NAME

    def _load_index(self) -> Dict[str, Dict[str, str]]:
        if not self.index_path.exists():
            return {}
        try:
            with self.index_path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache index %s: %s", self.index_path, exc)
            return {}
        return {str(version): dict(entries) for version, entries in data.get("versions", {}).items()}

    def _save_index(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        tmp_path = self.index_path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump({"versions": self._index}, handle, indent=2)
        tmp_path.replace(self.index_path)

    def version_dir(self, version: str) -> Path:
        return self.root / _version_dirname(version)

    def required_assets(self) -> List[AssetSpec]:
        return [spec for spec in self.config.assets if not spec.network_only]

    def populate(self, version: Optional[str] = None) -> List[str]:
        """
        Download every cacheable asset under ``version`` (the active tag by default).

        Returns the keys of the assets that could not be stored. A single
        failure never aborts the rest of the population.
        """
        missing: List[str] = []
        with self._lock:
            version = version if version is not None else self.version
            target_dir = self.version_dir(version)
            entries = self._index.setdefault(version, {})
            logger.info("Caching %d assets under %s", len(self.required_assets()), version)

            for spec in self.required_assets():
                filename = _entry_filename(spec.url)
                destination = target_dir / filename
                try:
                    if not (
                        destination.exists()
                        and spec.url in entries
                        and (not spec.sha256 or sha256_file(destination) == spec.sha256.lower())
                    ):
                        download_file(
                            self.session,
                            spec.url,
                            destination,
                            spec.sha256,
                            timeout=self.config.timeout,
                        )
                except (requests.RequestException, OSError, ValueError) as exc:
                    logger.warning("Failed to cache %s: %s", spec.url, exc)
                    entries.pop(spec.url, None)
                    missing.append(spec.url)
                    continue
                entries[spec.url] = filename

            self._save_index()
        if missing:
            logger.warning("%d assets are not available offline", len(missing))
        return missing

    def activate(self, new_version: Optional[str] = None) -> None:
        """Make ``new_version`` the active tag and delete every other version."""
        with self._lock:
            version = new_version if new_version is not None else self.version
            for stale in [name for name in self._index if name != version]:
                shutil.rmtree(self.version_dir(stale), ignore_errors=True)
                del self._index[stale]
                logger.info("Deleted cache version %s", stale)
            self.version = version
            self._save_index()

    def lookup(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            filename = self._index.get(self.version, {}).get(key)
            if filename is None:
                return None
            path = self.version_dir(self.version) / filename
            if not path.exists():
                return None
            return CacheEntry(key=key, version=self.version, path=path)

    def entries(self) -> List[CacheEntry]:
        with self._lock:
            return [
                CacheEntry(key=key, version=version, path=self.version_dir(version) / filename)
                for version, items in self._index.items()
                for key, filename in items.items()
            ]

    def resolve(self, request: str) -> AssetResponse:
        spec = self._specs.get(request)
        if spec is None or not spec.network_only:
            entry = self.lookup(request)
            if entry is not None:
                return AssetResponse(
                    key=request,
                    status=200,
                    source="cache",
                    path=entry.path,
                )

        try:
            response = self.session.get(request, timeout=self.config.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Asset %s unavailable offline: %s", request, exc)
            return AssetResponse(key=request, status=UNAVAILABLE_STATUS, source="unavailable")
        return AssetResponse(
            key=request,
            status=response.status_code,
            source="network",
            body=response.content,
        )
