from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

LOGGER = logging.getLogger(__name__)


class FontUnavailableError(RuntimeError):
    """The PDF font could not be downloaded or read."""


class FontProvider:
    """Downloads the Persian PDF font once and keeps it on disk."""

    def __init__(
        self,
        *,
        url: str,
        cache_path: Path,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._cache_path = cache_path
        self._timeout = timeout_seconds
        self._transport = transport
        self._lock = asyncio.Lock()
        self.last_error: str | None = None

    @property
    def cache_path(self) -> Path:
        return self._cache_path

    def is_cached(self) -> bool:
        try:
            return self._cache_path.is_file() and self._cache_path.stat().st_size > 0
        except OSError:
            return False

    async def get_path(self) -> Path:
        async with self._lock:
            if self.is_cached():
                return self._cache_path
            await self._download()
            return self._cache_path

    async def _download(self) -> None:
        LOGGER.info("Fetching PDF font from %s", self._url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._url, follow_redirects=True)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            self.last_error = str(exc)
            raise FontUnavailableError(f"Failed to fetch font: {exc}") from exc
        content = response.content
        if not content:
            self.last_error = "empty font data"
            raise FontUnavailableError("Received empty font data")
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            self._cache_path.write_bytes(content)
        except OSError as exc:
            self.last_error = str(exc)
            raise FontUnavailableError(f"Failed to store font at {self._cache_path}: {exc}") from exc
        self.last_error = None
        LOGGER.info("PDF font cached at %s (%.1f KB)", self._cache_path, len(content) / 1024)
