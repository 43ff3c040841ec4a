"""Storage for the persisted filter configuration."""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from logging import getLogger
from pathlib import Path

from pydantic import ValidationError

from .models import SUPPORTED_VERSIONS, FilterConfiguration

logger = getLogger(__name__)


class FilterPersistenceError(Exception):
    """Saving, loading or clearing the filter configuration failed."""


class FilterDecodeError(FilterPersistenceError):
    """Stored filter configuration exists but cannot be decoded."""


def decode_configuration(blob: str) -> FilterConfiguration | None:
    """Decode a stored configuration blob.

    Args:
        blob: JSON text as written by FilterConfiguration.to_json

    Returns:
        The configuration, or None when the blob carries an unsupported version

    Raises:
        FilterDecodeError: If the blob is not a valid configuration
    """
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise FilterDecodeError(f"Stored filter configuration is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise FilterDecodeError("Stored filter configuration is not a JSON object")

    version = data.get("version")
    if version is not None and (isinstance(version, bool) or not isinstance(version, int)):
        raise FilterDecodeError(f"Stored filter configuration has a malformed version {version!r}")
    if version not in SUPPORTED_VERSIONS:
        logger.warning(f"Ignoring stored filter configuration with unsupported version {version!r}")
        return None

    try:
        return FilterConfiguration.model_validate(data)
    except ValidationError as e:
        raise FilterDecodeError(f"Stored filter configuration is invalid: {e}") from e


class FilterPersistence(ABC):
    """Save, load and clear the filter configuration."""

    @abstractmethod
    async def save(self, configuration: FilterConfiguration) -> None:
        """Persist configuration, replacing anything stored before."""

    @abstractmethod
    async def load(self) -> FilterConfiguration | None:
        """Return the stored configuration, or None if nothing usable is stored.

        Raises:
            FilterDecodeError: If stored data is corrupt
        """

    @abstractmethod
    async def clear(self) -> None:
        """Remove the stored configuration."""


class InMemoryFilterPersistence(FilterPersistence):
    """Keeps the serialized configuration in memory for the lifetime of the object."""

    def __init__(self, blob: str | None = None) -> None:
        self.blob = blob
        self._lock = asyncio.Lock()

    async def save(self, configuration: FilterConfiguration) -> None:
        async with self._lock:
            self.blob = configuration.to_json()

    async def load(self) -> FilterConfiguration | None:
        async with self._lock:
            if self.blob is None:
                return None
            return decode_configuration(self.blob)

    async def clear(self) -> None:
        async with self._lock:
            self.blob = None


class JsonFileFilterPersistence(FilterPersistence):
    """Stores the configuration as a JSON file.

    All access goes through one asyncio.Lock so a save never interleaves with
    another save, load or clear. Writes go to a temporary file that is then
    renamed over the target.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _write(self, blob: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    async def save(self, configuration: FilterConfiguration) -> None:
        blob = configuration.to_json()
        async with self._lock:
            try:
                await asyncio.to_thread(self._write, blob)
            except OSError as e:
                raise FilterPersistenceError(f"Could not write {self.path}: {e}") from e
        logger.debug(f"Saved filter configuration to {self.path}")

    async def load(self) -> FilterConfiguration | None:
        async with self._lock:
            try:
                blob = await asyncio.to_thread(self._read)
            except (OSError, UnicodeDecodeError) as e:
                raise FilterDecodeError(f"Could not read {self.path}: {e}") from e

        if blob is None:
            logger.debug(f"No stored filter configuration at {self.path}")
            return None
        return decode_configuration(blob)

    async def clear(self) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self.path.unlink, missing_ok=True)
            except OSError as e:
                raise FilterPersistenceError(f"Could not remove {self.path}: {e}") from e
        logger.debug(f"Cleared filter configuration at {self.path}")
