"""In-memory extraction job state.

An `ExtractionJob` is the run context handed to every pipeline stage: it carries the
progress the UI polls and the cooperative cancellation flag. Nothing here is persisted;
a restart forgets all jobs.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from datetime import UTC, datetime

from .schemas import (
    ExtractionJobRead,
    ExtractionProgress,
    ExtractionStep,
    Notice,
    NoticeLevel,
)

logger = logging.getLogger(__name__)

MAX_TRACKED_JOBS = 100
TERMINAL_STEPS = frozenset({"complete", "stopped", "error"})


class ExtractionJob:
    def __init__(self, *, file_name: str, model: str, job_id: str | None = None) -> None:
        self.job_id = job_id or uuid.uuid4().hex
        self.file_name = file_name
        self.model = model
        self.progress = ExtractionProgress()
        self.is_processing = False
        self._stop = threading.Event()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    @property
    def is_finished(self) -> bool:
        return self.progress.step in TERMINAL_STEPS

    def request_stop(self) -> None:
        """Ask the pipeline to stop at the next chunk boundary."""
        self._stop.set()
        self.notify("info", "Stopping extraction after current chunk...")

    def start(self) -> None:
        """Mark the job running. A stop requested while queued stays pending."""
        if self.is_finished:
            self._stop.clear()
            self.progress = ExtractionProgress()
        self.is_processing = True

    def set_step(
        self,
        step: ExtractionStep,
        detail: str,
        *,
        current_chunk: int | None = None,
        total_chunks: int | None = None,
    ) -> None:
        self.progress.step = step
        self.progress.detail = detail
        if current_chunk is not None:
            self.progress.current_chunk = current_chunk
        if total_chunks is not None:
            self.progress.total_chunks = total_chunks

    def finish(self, step: ExtractionStep, detail: str) -> None:
        self.progress.step = step
        self.progress.detail = detail
        self.progress.current_chunk = None
        self.progress.total_chunks = None
        self.is_processing = False

    def notify(self, level: NoticeLevel, message: str) -> None:
        self.progress.notices.append(
            Notice(level=level, message=message, created_at=datetime.now(UTC))
        )

    def to_read(self) -> ExtractionJobRead:
        return ExtractionJobRead(
            job_id=self.job_id,
            file_name=self.file_name,
            model=self.model,
            is_processing=self.is_processing,
            progress=self.progress.model_copy(deep=True),
        )


class ExtractionJobRegistry:
    def __init__(self, max_jobs: int = MAX_TRACKED_JOBS) -> None:
        self.max_jobs = max_jobs
        self._jobs: OrderedDict[str, ExtractionJob] = OrderedDict()
        self._lock = threading.Lock()

    def create(self, *, file_name: str, model: str) -> ExtractionJob:
        job = ExtractionJob(file_name=file_name, model=model)
        with self._lock:
            self._jobs[job.job_id] = job
            self._evict_finished()
        return job

    def get(self, job_id: str) -> ExtractionJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()

    def _evict_finished(self) -> None:
        # Oldest first; queued and running jobs are never evicted.
        for job_id in list(self._jobs):
            if len(self._jobs) <= self.max_jobs:
                return
            if self._jobs[job_id].progress.step in TERMINAL_STEPS:
                del self._jobs[job_id]
                logger.debug("Evicted finished extraction job %s", job_id)


job_registry = ExtractionJobRegistry()
