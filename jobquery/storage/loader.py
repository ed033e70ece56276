"""Dataset providers and the single-flight dataset loader."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Protocol

import httpx

from jobquery.errors import DatasetLoadError, DatasetNotLoadedError
from jobquery.storage.database import DatasetExecutor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DATASET_FILENAME = "data.db"


class DatasetProvider(Protocol):
    """Anything that can produce the dataset image as bytes."""

    async def fetch(self) -> bytes: ...


# =============================================================================
# Providers
# =============================================================================


class HttpDatasetProvider:
    """Downloads ``<base_url><path>/data.db`` from a dataset server."""

    def __init__(
        self,
        base_url: str,
        path: str = "/db",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.path = path
        self.timeout = timeout
        self._client = client

    @property
    def url(self) -> str:
        path = "/" + self.path.strip("/") if self.path.strip("/") else ""
        return f"{self.base_url.rstrip('/')}{path}/{DATASET_FILENAME}"

    async def fetch(self) -> bytes:
        logger.info("Fetching dataset from %s", self.url)
        try:
            if self._client is not None:
                response = await self._client.get(self.url)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(self.url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise DatasetLoadError(f"Timed out fetching dataset from {self.url}") from e
        except httpx.HTTPStatusError as e:
            raise DatasetLoadError(
                f"Failed to fetch dataset: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            raise DatasetLoadError(f"Failed to fetch dataset from {self.url}: {e}") from e
        return response.content


class FileDatasetProvider:
    """Reads the dataset image from a local file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def fetch(self) -> bytes:
        logger.info("Reading dataset from %s", self.path)
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except OSError as e:
            raise DatasetLoadError(f"Failed to read dataset file {self.path}: {e}") from e


# =============================================================================
# Loader
# =============================================================================


class DatasetLoader:
    """Loads the dataset once and hands every caller the same executor.

    Callers arriving while a load is in flight await that same load. A failed
    load is terminal for that attempt only: the guard is reset so the next
    call fetches again.
    """

    def __init__(
        self,
        provider: DatasetProvider,
        decode: Callable[[bytes], DatasetExecutor] = DatasetExecutor.from_bytes,
    ) -> None:
        self.provider = provider
        self._decode = decode
        self._executor: DatasetExecutor | None = None
        self._pending: asyncio.Task[DatasetExecutor] | None = None
        self.attempts = 0

    @property
    def loaded(self) -> bool:
        return self._executor is not None

    @property
    def executor(self) -> DatasetExecutor:
        if self._executor is None:
            raise DatasetNotLoadedError("Dataset not loaded. Await DatasetLoader.load() first.")
        return self._executor

    async def load(self) -> DatasetExecutor:
        if self._executor is not None:
            return self._executor
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load_once())
        # shield: one cancelled caller must not abort the shared load
        return await asyncio.shield(self._pending)

    async def _load_once(self) -> DatasetExecutor:
        self.attempts += 1
        start = time.monotonic()
        try:
            data = await self.provider.fetch()
            executor = self._decode(data)
        except DatasetLoadError as e:
            self._pending = None
            logger.error("Dataset load attempt %d failed: %s", self.attempts, e)
            raise
        except Exception as e:
            self._pending = None
            logger.error("Dataset load attempt %d failed: %s", self.attempts, e, exc_info=True)
            raise DatasetLoadError(f"Dataset load failed: {e}") from e

        self._executor = executor
        self._pending = None
        logger.info("Dataset ready in %.2f seconds", time.monotonic() - start)
        return executor

    def close(self) -> None:
        if self._executor is not None:
            self._executor.close()
            self._executor = None
