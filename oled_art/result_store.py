import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .code_generator import Library
from .config import ProcessOptions
from .processor import ProcessResult

logger = logging.getLogger(__name__)


@dataclass
class UploadRecord:
    """
    One uploaded video and its latest processing result.

    ``generation`` counts process requests; only the result of the newest
    request is ever stored.
    """

    upload_id: str
    path: Path
    original_filename: str
    size: int
    duration: float
    status: str = "uploaded"
    generation: int = 0
    result: Optional[ProcessResult] = None
    options: Optional[ProcessOptions] = None
    library: Library = Library.ADAFRUIT_GFX_SSD1306
    error: Optional[str] = None


class StaleResultError(Exception):
    """Raised when a finished request was superseded by a newer one."""

    pass


class ResultStore:
    """
    In-memory registry of uploads with latest-request-wins results.

    A caller takes a generation with begin_processing(), runs the pipeline
    without holding any lock, then hands the result to complete(). If another
    request began in the meantime the older result is discarded.
    """

    def __init__(self):
        self._records: Dict[str, UploadRecord] = {}
        self._lock = asyncio.Lock()

    async def add(self, record: UploadRecord) -> UploadRecord:
        async with self._lock:
            self._records[record.upload_id] = record
            logger.info(
                f"Registered upload {record.upload_id} ({record.original_filename}, "
                f"{record.size} bytes, {record.duration:.2f}s)"
            )
            return record

    def get(self, upload_id: str) -> Optional[UploadRecord]:
        return self._records.get(upload_id)

    async def remove(self, upload_id: str) -> Optional[UploadRecord]:
        async with self._lock:
            return self._records.pop(upload_id, None)

    async def begin_processing(self, upload_id: str) -> int:
        """
        Start a new process request for an upload.

        Returns:
            int: Generation number of this request

        Raises:
            KeyError: If the upload is unknown
        """
        async with self._lock:
            record = self._records[upload_id]
            record.generation += 1
            record.status = "processing"
            logger.debug(f"Upload {upload_id}: processing generation {record.generation}")
            return record.generation

    async def complete(
        self,
        upload_id: str,
        generation: int,
        result: ProcessResult,
        options: ProcessOptions,
        library: Library,
    ) -> UploadRecord:
        """
        Store a finished result if it is still the newest request.

        Raises:
            KeyError: If the upload was removed meanwhile
            StaleResultError: If a newer request started after this one
        """
        async with self._lock:
            record = self._records[upload_id]
            if generation != record.generation:
                logger.info(
                    f"Discarding stale result for {upload_id} "
                    f"(generation {generation}, latest {record.generation})"
                )
                raise StaleResultError(
                    f"Request superseded by a newer request for upload {upload_id}"
                )
            record.result = result
            record.options = options
            record.library = library
            record.status = "completed"
            record.error = None
            return record

    async def fail(self, upload_id: str, generation: int, message: str) -> None:
        async with self._lock:
            record = self._records.get(upload_id)
            if record is None or generation != record.generation:
                return
            record.status = "failed"
            record.error = message

    async def clear(self) -> List[UploadRecord]:
        async with self._lock:
            records = list(self._records.values())
            self._records.clear()
            return records
