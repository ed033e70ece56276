"""Tests for dataset providers, the executor and the single-flight loader."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from jobquery.errors import DatasetLoadError, DatasetNotLoadedError, QueryFailedError
from jobquery.storage.database import DatasetExecutor
from jobquery.storage.loader import DatasetLoader, FileDatasetProvider, HttpDatasetProvider


class _CountingProvider:
    """Serves the fixture bytes after an optional number of failures."""

    def __init__(self, data: bytes, failures: int = 0) -> None:
        self.data = data
        self.failures = failures
        self.calls = 0

    async def fetch(self) -> bytes:
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.calls <= self.failures:
            raise DatasetLoadError("dataset server unavailable")
        return self.data


class TestDatasetExecutor:
    """Test suite for the in-memory executor."""

    def test_from_bytes(self, dataset_path: Path) -> None:
        executor = DatasetExecutor.from_bytes(dataset_path.read_bytes())
        assert executor.execute("SELECT COUNT(*) FROM job_details").scalar() == 6
        executor.close()

    def test_rejects_non_sqlite_bytes(self) -> None:
        with pytest.raises(DatasetLoadError):
            DatasetExecutor.from_bytes(b"<html>not found</html>")

    def test_from_path(self, dataset_path: Path) -> None:
        executor = DatasetExecutor.from_path(dataset_path)
        assert executor.has_column("job_details", "posting_date")
        assert not executor.has_column("job_details", "min_salary_mdl")
        executor.close()

    def test_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(DatasetLoadError):
            DatasetExecutor.from_path(tmp_path / "missing.db")

    def test_failed_query_carries_sql_and_params(self, executor: DatasetExecutor) -> None:
        with pytest.raises(QueryFailedError) as excinfo:
            executor.execute("SELECT * FROM no_such_table WHERE id = ?", [7])
        assert excinfo.value.sql == "SELECT * FROM no_such_table WHERE id = ?"
        assert excinfo.value.params == (7,)
        assert "no_such_table" in str(excinfo.value)

    def test_query_objects(self, executor: DatasetExecutor) -> None:
        rows = executor.query_objects("SELECT id, job_title FROM job_details WHERE id = ?", [1])
        assert rows == [{"id": 1, "job_title": "Python Developer"}]


class TestDatasetLoader:
    """Test suite for load-once semantics."""

    def test_executor_before_load(self, dataset_path: Path) -> None:
        loader = DatasetLoader(FileDatasetProvider(dataset_path))
        assert not loader.loaded
        with pytest.raises(DatasetNotLoadedError):
            _ = loader.executor

    def test_concurrent_loads_fetch_once(self, dataset_path: Path) -> None:
        provider = _CountingProvider(dataset_path.read_bytes())
        loader = DatasetLoader(provider)

        async def run() -> list[DatasetExecutor]:
            return await asyncio.gather(*(loader.load() for _ in range(5)))

        executors = asyncio.run(run())
        assert provider.calls == 1
        assert all(executor is executors[0] for executor in executors)
        assert loader.executor is executors[0]
        loader.close()

    def test_failure_resets_guard(self, dataset_path: Path) -> None:
        """Every waiter sees the failure; the next call retries."""
        provider = _CountingProvider(dataset_path.read_bytes(), failures=1)
        loader = DatasetLoader(provider)

        async def run() -> list[object]:
            return await asyncio.gather(loader.load(), loader.load(), return_exceptions=True)

        results = asyncio.run(run())
        assert all(isinstance(result, DatasetLoadError) for result in results)
        assert not loader.loaded

        executor = asyncio.run(loader.load())
        assert provider.calls == 2
        assert loader.attempts == 2
        assert executor.execute("SELECT COUNT(*) FROM job_details").scalar() == 6
        loader.close()

    def test_decode_failure_wrapped(self) -> None:
        loader = DatasetLoader(_CountingProvider(b"garbage"))
        with pytest.raises(DatasetLoadError):
            asyncio.run(loader.load())

    def test_missing_file(self, tmp_path: Path) -> None:
        loader = DatasetLoader(FileDatasetProvider(tmp_path / "missing.db"))
        with pytest.raises(DatasetLoadError):
            asyncio.run(loader.load())


class TestHttpDatasetProvider:
    """Test suite for fetching the dataset over HTTP."""

    def test_url(self) -> None:
        assert HttpDatasetProvider("http://localhost:8000/").url == "http://localhost:8000/db/data.db"
        assert HttpDatasetProvider("http://cdn", path="").url == "http://cdn/data.db"

    def test_fetch(self, dataset_path: Path) -> None:
        data = dataset_path.read_bytes()
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=data)

        async def run() -> bytes:
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                provider = HttpDatasetProvider("http://datasets.test", client=client)
                return await provider.fetch()

        assert asyncio.run(run()) == data
        assert seen == ["http://datasets.test/db/data.db"]

    def test_http_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="missing")

        async def run() -> bytes:
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await HttpDatasetProvider("http://datasets.test", client=client).fetch()

        with pytest.raises(DatasetLoadError) as excinfo:
            asyncio.run(run())
        assert "404" in str(excinfo.value)

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async def run() -> bytes:
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await HttpDatasetProvider("http://datasets.test", client=client).fetch()

        with pytest.raises(DatasetLoadError):
            asyncio.run(run())
