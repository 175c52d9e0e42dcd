"""Background transcription and summarization of recorded entries."""

from __future__ import annotations

import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from voice_journal.core.errors import JournalError
from voice_journal.core.logging import get_logger
from voice_journal.core.metrics import ENRICHMENT_OUTCOMES
from voice_journal.db.entries import EntryRepository
from voice_journal.enrichment.client import EnrichmentClient
from voice_journal.models.entities import Entry
from voice_journal.storage.media import MediaStore

if TYPE_CHECKING:
    from voice_journal.workflow.error_log import ErrorLog

logger = get_logger(__name__)


@dataclass(slots=True)
class EnrichmentOutcome:
    entry_id: str
    success: bool
    transcript: str | None = None
    summary: str | None = None
    error: Exception | None = None


class EnrichmentRunner:
    """Transcribes and summarizes entries on a thread pool.

    At most one task per entry is in flight; submitting the same entry again
    returns the running future. Tasks for different entries run concurrently
    with no ordering guarantee. A failed task is logged and recorded in the
    error log; its future still resolves to an ``EnrichmentOutcome``.
    """

    def __init__(
        self,
        client: EnrichmentClient,
        repository: EntryRepository,
        media: MediaStore,
        error_log: ErrorLog | None = None,
        max_workers: int = 2,
    ) -> None:
        self.client = client
        self.repository = repository
        self.media = media
        self.error_log = error_log
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enrichment")
        self._in_flight: dict[str, Future[EnrichmentOutcome]] = {}
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        return self.client.is_configured()

    def in_flight(self, entry_id: str) -> bool:
        with self._lock:
            return entry_id in self._in_flight

    def submit(self, entry: Entry) -> Future[EnrichmentOutcome]:
        with self._lock:
            running = self._in_flight.get(entry.id)
            if running is not None:
                logger.debug("Enrichment already running for %s", entry.id)
                return running
            future = self._executor.submit(self._run, entry)
            self._in_flight[entry.id] = future
        future.add_done_callback(lambda _f, entry_id=entry.id: self._forget(entry_id))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _forget(self, entry_id: str) -> None:
        with self._lock:
            self._in_flight.pop(entry_id, None)

    def _run(self, entry: Entry) -> EnrichmentOutcome:
        extra = {"ctx_entry_id": entry.id}
        try:
            if not entry.audio_path:
                raise ValueError(f"Entry {entry.id} has no audio file")
            audio = self.media.read_bytes(entry.audio_path)
            extension = os.path.splitext(entry.audio_path)[1] or self.media.extension
            transcript = self.client.transcribe(audio, f"audio_{entry.id}{extension}")
            summary = self.client.summarize(transcript)
            self.repository.update_entry(entry.id, transcript=transcript, summary=summary)
        except JournalError as exc:
            logger.warning("Enrichment failed for %s: %s", entry.id, exc.message, extra=extra)
            return self._failed(entry, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Enrichment crashed for %s", entry.id, extra=extra)
            return self._failed(entry, exc)
        ENRICHMENT_OUTCOMES.labels(outcome="success").inc()
        logger.info("Enrichment completed for %s", entry.id, extra=extra)
        return EnrichmentOutcome(entry_id=entry.id, success=True, transcript=transcript, summary=summary)

    def _failed(self, entry: Entry, exc: Exception) -> EnrichmentOutcome:
        code = getattr(exc, "code", type(exc).__name__)
        ENRICHMENT_OUTCOMES.labels(outcome=code).inc()
        if self.error_log is not None:
            self.error_log.record(exc, context="background enrichment")
        return EnrichmentOutcome(entry_id=entry.id, success=False, error=exc)


__all__ = ["EnrichmentRunner", "EnrichmentOutcome"]
