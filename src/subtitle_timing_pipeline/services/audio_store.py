"""Audio retrieval for the timing pipeline.

Audio references are usually HTTP(S) URLs pointing at a storage bucket. Plain
filesystem paths and ``file://`` URLs are read from disk.
"""

import asyncio
from pathlib import Path
from typing import Any, Final, Protocol
from urllib.parse import urlparse

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from subtitle_timing_pipeline.constants import DEFAULT_DOWNLOAD_RETRIES, DEFAULT_DOWNLOAD_TIMEOUT
from subtitle_timing_pipeline.exceptions import AudioDownloadError

HTTP_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https"})
FILE_SCHEME: Final[str] = "file"
DEFAULT_BACKOFF_FACTOR: Final[float] = 0.5
MAX_BACKOFF_SECONDS: Final[float] = 2.0


class AudioStore(Protocol):
    """Source of raw audio bytes for an opaque reference."""

    async def fetch(self, *, reference: str) -> bytes: ...


class HttpAudioStore:
    """Async audio downloader with a bounded per-download budget."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_DOWNLOAD_TIMEOUT,
        max_attempts: int = DEFAULT_DOWNLOAD_RETRIES,
        session: ClientSession | None = None,
    ) -> None:
        """Initialize the audio store.

        Args:
            timeout_seconds: Total time allowed for one download, retries included.
            max_attempts: Attempts made for connection-level failures.
            session: Optional externally managed HTTP session.
        """
        self._timeout_seconds = timeout_seconds
        self._max_attempts = max_attempts
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HttpAudioStore":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession(timeout=ClientTimeout(total=self._timeout_seconds))
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this store created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def fetch(self, *, reference: str) -> bytes:
        """Fetch raw audio bytes.

        Args:
            reference: HTTP(S) URL, ``file://`` URL or local path.

        Returns:
            Audio payload.

        Raises:
            AudioDownloadError: If the audio cannot be retrieved in time.
        """
        if not reference:
            raise AudioDownloadError("No audio reference provided")

        parsed = urlparse(reference)
        if parsed.scheme in HTTP_SCHEMES:
            try:
                payload = await asyncio.wait_for(
                    self._download(url=reference), timeout=self._timeout_seconds
                )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise AudioDownloadError(f"Failed to download {reference}: {e!r}") from e
        else:
            path = Path(parsed.path if parsed.scheme == FILE_SCHEME else reference)
            payload = await self._read_local(path=path)

        if not payload:
            raise AudioDownloadError(f"Empty audio payload for {reference}")

        logger.debug(f"Fetched {len(payload)} audio bytes from {reference}")
        return payload

    async def _download(self, *, url: str) -> bytes:
        session = await self._ensure_session()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=DEFAULT_BACKOFF_FACTOR, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception_type(aiohttp.ClientConnectionError),
            reraise=True,
        ):
            with attempt:
                async with session.get(url) as response:
                    response.raise_for_status()
                    return await response.read()
        raise AudioDownloadError(f"No download attempt was made for {url}")

    async def _read_local(self, *, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise AudioDownloadError(f"Cannot read audio file {path}: {e}") from e
