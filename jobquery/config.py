"""Engine configuration read from environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from jobquery.analysis.analyses import DEFAULT_ANALYSES_PATH
from jobquery.storage.loader import (
    DEFAULT_TIMEOUT,
    DatasetProvider,
    FileDatasetProvider,
    HttpDatasetProvider,
)


class EngineConfig(BaseModel):
    """Settings for loading the dataset and shaping query results."""

    dataset_url: str | None = None
    dataset_path: str = "/db"
    dataset_file: str | None = None
    fetch_timeout: float = DEFAULT_TIMEOUT
    page_size: int = Field(default=20, ge=1)
    default_currency: str = "MDL"
    batch_hydration: bool = False
    analyses_file: Path = DEFAULT_ANALYSES_PATH

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Collect settings from ``JOBQUERY_*`` variables, keeping defaults for unset ones."""
        data: dict[str, object] = {}
        env_map = {
            "dataset_url": "JOBQUERY_DATASET_URL",
            "dataset_path": "JOBQUERY_DATASET_PATH",
            "dataset_file": "JOBQUERY_DATASET_FILE",
            "fetch_timeout": "JOBQUERY_FETCH_TIMEOUT",
            "page_size": "JOBQUERY_PAGE_SIZE",
            "default_currency": "JOBQUERY_DEFAULT_CURRENCY",
            "analyses_file": "JOBQUERY_ANALYSES_FILE",
        }
        for field_name, env_var in env_map.items():
            value = os.getenv(env_var)
            if value:
                data[field_name] = value
        data["batch_hydration"] = os.getenv("JOBQUERY_BATCH_HYDRATION", "false").lower() == "true"
        return cls(**data)

    def build_provider(self) -> DatasetProvider:
        """A local file takes precedence over the dataset server."""
        if self.dataset_file:
            return FileDatasetProvider(self.dataset_file)
        if self.dataset_url:
            return HttpDatasetProvider(self.dataset_url, self.dataset_path, self.fetch_timeout)
        raise ValueError("Set JOBQUERY_DATASET_FILE or JOBQUERY_DATASET_URL to locate the dataset")
