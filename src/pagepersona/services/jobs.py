"""Background execution of transformations.

A job runs the pipeline on a worker thread so the submitting caller can
return immediately and poll :meth:`JobRunner.get_job` later. Jobs are keyed
by a digest of their inputs: identical submissions share one job and a
per-job lock keeps them from running twice. Once started, a job runs to
completion or failure; there is no cancellation.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from cachetools import TTLCache
from pydantic import BaseModel, Field

from pagepersona.config import JobConfig
from pagepersona.errors import ErrorCode, classify_error, format_error
from pagepersona.models import TransformationResult, TransformationServiceResult
from pagepersona.services.pipeline import SourceMode, TransformationPipeline

__all__ = [
    "JobRecord",
    "JobRunner",
    "JobStage",
    "JobStatus",
    "JobStore",
    "JobSubmission",
    "generate_job_id",
]

logger = logging.getLogger(__name__)

MAX_TRACKED_JOBS = 10_000


class JobStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStage(str, Enum):
    SCRAPE = "scrape"
    CLEAN = "clean"
    GENERATE = "generate"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRecord(BaseModel):
    """Observable state of one background job."""

    job_id: str
    mode: SourceMode
    status: JobStatus = JobStatus.CREATED
    stage: Optional[JobStage] = None
    progress: int = Field(default=0, ge=0, le=100)
    result: Optional[TransformationResult] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


def generate_job_id(source: str, persona_id: str, mode: SourceMode) -> str:
    """Return a deterministic id for a job with the given inputs."""

    payload = json.dumps({"mode": mode, "persona": persona_id, "source": source}, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:32]


class JobStore:
    """In-memory job records and per-job locks.

    Records expire after ``ttl_seconds``. Locks expire after the shorter
    ``lock_ttl_seconds`` so a worker that dies cannot block its key for long.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        *,
        lock_ttl_seconds: float = 300,
        max_jobs: int = MAX_TRACKED_JOBS,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._records: TTLCache = TTLCache(maxsize=max_jobs, ttl=ttl_seconds, timer=timer)
        self._locks: TTLCache = TTLCache(maxsize=max_jobs, ttl=lock_ttl_seconds, timer=timer)
        self._mutex = threading.Lock()

    def create(self, job_id: str, mode: SourceMode) -> JobRecord:
        record = JobRecord(job_id=job_id, mode=mode)
        with self._mutex:
            self._records[job_id] = record
        logger.info("Job %s created (%s)", job_id, mode)
        return record

    def get(self, job_id: str) -> JobRecord | None:
        with self._mutex:
            return self._records.get(job_id)

    def update_progress(self, job_id: str, stage: JobStage, progress: int) -> JobRecord | None:
        progress = max(0, min(100, progress))
        record = self._update(job_id, status=JobStatus.RUNNING, stage=stage, progress=progress)
        if record is not None:
            logger.info("Job %s running: %s (%d%%)", job_id, stage.value, progress)
        return record

    def complete(self, job_id: str, result: TransformationResult) -> JobRecord | None:
        record = self._update(job_id, status=JobStatus.COMPLETED, progress=100, result=result)
        if record is not None:
            logger.info("Job %s completed", job_id)
        return record

    def fail(self, job_id: str, error: str, error_code: ErrorCode | None = None) -> JobRecord | None:
        record = self._update(job_id, status=JobStatus.FAILED, error=error, error_code=error_code)
        if record is not None:
            logger.warning("Job %s failed: %s", job_id, error)
        return record

    def acquire_lock(self, job_id: str) -> bool:
        """Take the run lock for ``job_id``; ``False`` when it is already held."""

        with self._mutex:
            if job_id in self._locks:
                return False
            self._locks[job_id] = True
            return True

    def release_lock(self, job_id: str) -> None:
        with self._mutex:
            self._locks.pop(job_id, None)

    def is_locked(self, job_id: str) -> bool:
        with self._mutex:
            return job_id in self._locks

    def _update(self, job_id: str, **changes) -> JobRecord | None:
        with self._mutex:
            record = self._records.get(job_id)
            if record is None:
                logger.warning("Job %s expired before it could be updated", job_id)
                return None
            record = record.model_copy(update={**changes, "updated_at": _utcnow()})
            self._records[job_id] = record
            return record


@dataclass(slots=True)
class JobSubmission:
    """Answer returned to the caller that submitted a job."""

    job_id: str
    status: JobStatus
    cached: bool = False
    result: TransformationResult | None = None


class JobRunner:
    """Run pipeline transformations on a thread pool and track their state."""

    def __init__(
        self,
        pipeline: TransformationPipeline,
        store: JobStore | None = None,
        executor: Executor | None = None,
        config: JobConfig | None = None,
    ) -> None:
        self.config = config or JobConfig()
        self.pipeline = pipeline
        self.store = store or JobStore(
            self.config.job_ttl_seconds, lock_ttl_seconds=self.config.lock_ttl_seconds
        )
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="pagepersona-job"
        )
        self._closed = False

    def submit_webpage(self, url: str, persona_id: str, user_id: str | None = None) -> JobSubmission:
        return self._submit(
            "webpage",
            url,
            persona_id,
            lambda: self.pipeline.transform_webpage(url, persona_id, user_id),
        )

    def submit_text(self, text: str, persona_id: str, user_id: str | None = None) -> JobSubmission:
        return self._submit(
            "text",
            text,
            persona_id,
            lambda: self.pipeline.transform_text(text, persona_id, user_id),
        )

    def get_job(self, job_id: str) -> JobRecord | None:
        return self.store.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; running jobs finish when ``wait`` is true."""

        self._closed = True
        self._executor.shutdown(wait=wait)

    def _submit(
        self,
        mode: SourceMode,
        source: str,
        persona_id: str,
        run: Callable[[], TransformationServiceResult],
    ) -> JobSubmission:
        if self._closed:
            raise RuntimeError("JobRunner has been shut down")

        job_id = generate_job_id(source, persona_id, mode)

        cached = self.pipeline.get_cached_result(source, persona_id, mode)
        if cached is not None:
            self.store.create(job_id, mode)
            self.store.complete(job_id, cached)
            return JobSubmission(job_id=job_id, status=JobStatus.COMPLETED, cached=True, result=cached)

        if not self.store.acquire_lock(job_id):
            existing = self.store.get(job_id)
            logger.info("Job %s is already in progress", job_id)
            status = existing.status if existing is not None else JobStatus.RUNNING
            return JobSubmission(job_id=job_id, status=status)

        try:
            self.store.create(job_id, mode)
            self._executor.submit(self._run, job_id, mode, run)
        except Exception:
            self.store.release_lock(job_id)
            raise

        return JobSubmission(job_id=job_id, status=JobStatus.CREATED)

    def _run(self, job_id: str, mode: SourceMode, run: Callable[[], TransformationServiceResult]) -> None:
        try:
            if mode == "webpage":
                self.store.update_progress(job_id, JobStage.SCRAPE, 10)
            else:
                self.store.update_progress(job_id, JobStage.CLEAN, 20)

            outcome = run()
            if outcome.success and outcome.data is not None:
                self.store.complete(job_id, outcome.data)
            else:
                self.store.fail(
                    job_id,
                    outcome.error or "Transformation failed",
                    outcome.error_code or ErrorCode.TRANSFORMATION_FAILED,
                )
        except Exception as exc:
            logger.exception("Job %s raised an error", job_id)
            self.store.fail(job_id, format_error(exc), classify_error(exc))
        finally:
            self.store.release_lock(job_id)
