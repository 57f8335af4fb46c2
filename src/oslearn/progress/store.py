"""Progress persistence.

This module implements the ProgressStore protocol with:
- JsonFileProgressStore: one JSON record on local disk
- InMemoryProgressStore: process-local store for tests and ephemeral runs

Loading merges the persisted record over defaults, so records written by
older versions (missing keys) still load.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from oslearn.progress.models import ModuleProgress


logger = logging.getLogger(__name__)


class ProgressStoreError(Exception):
    """Raised when the persisted record cannot be read or written.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


@runtime_checkable
class ProgressStore(Protocol):
    """Protocol for learner progress persistence."""

    async def load(self) -> Optional[ModuleProgress]:
        """Load the persisted progress.

        Returns:
            The stored progress, or None when nothing has been saved yet.
        """
        ...

    async def save(self, progress: ModuleProgress) -> None:
        """Persist the progress, replacing any previous record."""
        ...

    async def clear(self) -> None:
        """Remove the persisted record."""
        ...


def progress_from_record(record: Dict[str, Any]) -> ModuleProgress:
    """Merge a persisted record over default progress.

    Raises:
        ProgressStoreError: If the record does not describe valid progress.
    """
    defaults = ModuleProgress().to_record()
    merged = {**defaults, **{k: v for k, v in record.items() if v is not None}}
    try:
        return ModuleProgress.model_validate(merged)
    except ValidationError as e:
        raise ProgressStoreError("Persisted progress is invalid", e) from e


class JsonFileProgressStore:
    """Stores progress as a single JSON document on disk.

    Writes go to a temporary sibling file which then replaces the record,
    so a crash mid-write leaves the previous record intact.

    Attributes:
        path: Location of the JSON record.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    async def load(self) -> Optional[ModuleProgress]:
        """Load and validate the record, or None if no record exists."""
        return await asyncio.to_thread(self._load_sync)

    def _load_sync(self) -> Optional[ModuleProgress]:
        if not self.path.exists():
            logger.info(
                "No saved progress found",
                extra={"progress_path": str(self.path)},
            )
            return None
        try:
            record = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ProgressStoreError(f"Could not read progress from {self.path}", e) from e
        if not isinstance(record, dict):
            raise ProgressStoreError(f"Progress record in {self.path} is not an object")
        return progress_from_record(record)

    async def save(self, progress: ModuleProgress) -> None:
        """Write the record atomically."""
        await asyncio.to_thread(self._save_sync, progress)

    def _save_sync(self, progress: ModuleProgress) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(
                json.dumps(progress.to_record(), indent=2),
                encoding="utf-8",
            )
            tmp_path.replace(self.path)
        except OSError as e:
            raise ProgressStoreError(f"Could not write progress to {self.path}", e) from e
        logger.debug(
            "Progress saved",
            extra={
                "progress_path": str(self.path),
                "current_stage": progress.current_stage,
            },
        )

    async def clear(self) -> None:
        """Delete the record if present."""
        await asyncio.to_thread(self.path.unlink, True)


class InMemoryProgressStore:
    """Keeps the progress record in memory."""

    def __init__(self, initial: Optional[ModuleProgress] = None):
        self._record: Optional[Dict[str, Any]] = (
            initial.to_record() if initial is not None else None
        )

    async def load(self) -> Optional[ModuleProgress]:
        if self._record is None:
            return None
        return progress_from_record(self._record)

    async def save(self, progress: ModuleProgress) -> None:
        self._record = progress.to_record()

    async def clear(self) -> None:
        self._record = None

    @property
    def record(self) -> Optional[Dict[str, Any]]:
        """The raw stored record, for inspection."""
        return self._record
