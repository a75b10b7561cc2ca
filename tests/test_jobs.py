from __future__ import annotations

from concurrent.futures import Future

import pytest

from pagepersona.config import JobConfig
from pagepersona.errors import ErrorCode, PageNotFoundError
from pagepersona.models import OriginalContent, PersonaSummary, TransformationResult, TransformationServiceResult
from pagepersona.services.jobs import JobRunner, JobStage, JobStatus, JobStore, generate_job_id

URL = "https://example.com/news"


class ImmediateExecutor:
    """Runs submitted work inline so tests can inspect the finished job."""

    def __init__(self) -> None:
        self.submitted = 0
        self.shut_down = False

    def submit(self, fn, *args, **kwargs) -> Future:
        self.submitted += 1
        future: Future = Future()
        future.set_result(fn(*args, **kwargs))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self.shut_down = True


class DeferredExecutor(ImmediateExecutor):
    """Accepts work without running it, leaving the job in flight."""

    def submit(self, fn, *args, **kwargs) -> Future:
        self.submitted += 1
        self.pending = (fn, args)
        return Future()


def _result(content: str = "## Done") -> TransformationResult:
    return TransformationResult(
        success=True,
        original_content=OriginalContent(title="News", content="Stores open", url=URL, word_count=2),
        transformed_content=content,
        persona=PersonaSummary(id="eli5", name="Explain Like I'm 5", description="Simple"),
    )


class FakePipeline:
    def __init__(self, outcome=None, error: Exception | None = None, cached: TransformationResult | None = None):
        self.outcome = outcome or TransformationServiceResult(success=True, data=_result())
        self.error = error
        self.cached = cached
        self.calls: list[tuple] = []
        self.progress_seen: list = []
        self.store: JobStore | None = None

    def get_cached_result(self, source, persona_id, mode):
        return self.cached

    def _run(self, *call):
        self.calls.append(call)
        if self.store is not None:
            job_id = generate_job_id(call[1], call[2], call[0])
            self.progress_seen.append(self.store.get(job_id))
        if self.error is not None:
            raise self.error
        return self.outcome

    def transform_webpage(self, url, persona_id, user_id=None):
        return self._run("webpage", url, persona_id, user_id)

    def transform_text(self, text, persona_id, user_id=None):
        return self._run("text", text, persona_id, user_id)


def _runner(pipeline: FakePipeline, executor=None) -> JobRunner:
    store = JobStore()
    pipeline.store = store
    return JobRunner(pipeline, store=store, executor=executor or ImmediateExecutor())


def test_generate_job_id_is_deterministic() -> None:
    first = generate_job_id(URL, "eli5", "webpage")

    assert first == generate_job_id(URL, "eli5", "webpage")
    assert len(first) == 32
    assert first != generate_job_id(URL, "robot", "webpage")
    assert first != generate_job_id(URL, "eli5", "text")


def test_webpage_job_completes() -> None:
    pipeline = FakePipeline()
    runner = _runner(pipeline)

    submission = runner.submit_webpage(URL, "eli5", user_id="user-1")

    assert submission.status is JobStatus.CREATED
    assert submission.cached is False
    assert pipeline.calls == [("webpage", URL, "eli5", "user-1")]

    running = pipeline.progress_seen[0]
    assert running.status is JobStatus.RUNNING
    assert running.stage is JobStage.SCRAPE
    assert running.progress == 10

    job = runner.get_job(submission.job_id)
    assert job.status is JobStatus.COMPLETED
    assert job.progress == 100
    assert job.result.transformed_content == "## Done"
    assert runner.store.is_locked(submission.job_id) is False


def test_text_job_reports_clean_stage() -> None:
    pipeline = FakePipeline()
    runner = _runner(pipeline)

    submission = runner.submit_text("Some text", "robot")

    running = pipeline.progress_seen[0]
    assert running.stage is JobStage.CLEAN
    assert running.progress == 20
    assert runner.get_job(submission.job_id).status is JobStatus.COMPLETED


def test_fetch_error_fails_the_job_and_releases_the_lock() -> None:
    pipeline = FakePipeline(error=PageNotFoundError())
    runner = _runner(pipeline)

    submission = runner.submit_webpage(URL, "eli5")

    job = runner.get_job(submission.job_id)
    assert job.status is JobStatus.FAILED
    assert job.error == "Page not found. Please check the URL."
    assert job.error_code is ErrorCode.SCRAPING_FAILED
    assert runner.store.is_locked(submission.job_id) is False

    runner.submit_webpage(URL, "eli5")
    assert len(pipeline.calls) == 2


def test_unsuccessful_result_fails_the_job() -> None:
    outcome = TransformationServiceResult(
        success=False, error="OpenAI API error: boom", error_code=ErrorCode.TRANSFORMATION_FAILED
    )
    runner = _runner(FakePipeline(outcome=outcome))

    submission = runner.submit_text("Some text", "eli5")

    job = runner.get_job(submission.job_id)
    assert job.status is JobStatus.FAILED
    assert job.error == "OpenAI API error: boom"
    assert job.error_code is ErrorCode.TRANSFORMATION_FAILED


def test_cached_result_short_circuits() -> None:
    executor = ImmediateExecutor()
    pipeline = FakePipeline(cached=_result("## From cache"))
    runner = _runner(pipeline, executor)

    submission = runner.submit_webpage(URL, "eli5")

    assert submission.cached is True
    assert submission.status is JobStatus.COMPLETED
    assert submission.result.transformed_content == "## From cache"
    assert executor.submitted == 0
    assert pipeline.calls == []
    assert runner.get_job(submission.job_id).status is JobStatus.COMPLETED


def test_identical_job_in_flight_is_not_started_twice() -> None:
    executor = DeferredExecutor()
    runner = _runner(FakePipeline(), executor)

    first = runner.submit_webpage(URL, "eli5")
    second = runner.submit_webpage(URL, "eli5")

    assert second.job_id == first.job_id
    assert second.status is JobStatus.CREATED
    assert executor.submitted == 1


def test_store_clamps_progress() -> None:
    store = JobStore()
    store.create("job", "text")

    assert store.update_progress("job", JobStage.GENERATE, 150).progress == 100
    assert store.update_progress("job", JobStage.GENERATE, -5).progress == 0


def test_store_forgets_jobs_after_ttl() -> None:
    now = [0.0]
    store = JobStore(ttl_seconds=60, lock_ttl_seconds=30, timer=lambda: now[0])
    store.create("job", "webpage")
    assert store.acquire_lock("job") is True
    assert store.acquire_lock("job") is False

    now[0] = 61.0

    assert store.get("job") is None
    assert store.acquire_lock("job") is True


def test_locks_expire_before_the_job_record() -> None:
    now = [0.0]
    store = JobStore(timer=lambda: now[0])
    store.create("job", "webpage")
    assert store.acquire_lock("job") is True

    now[0] = 299.0
    assert store.is_locked("job") is True

    now[0] = 301.0
    assert store.is_locked("job") is False
    assert store.get("job") is not None
    assert store.acquire_lock("job") is True


def test_runner_builds_store_from_job_config() -> None:
    runner = JobRunner(FakePipeline(), executor=ImmediateExecutor(), config=JobConfig(lock_ttl_seconds=5))

    assert runner.store._locks.ttl == 5
    assert runner.store._records.ttl == 3600


def test_shutdown_stops_new_submissions() -> None:
    executor = ImmediateExecutor()
    runner = _runner(FakePipeline(), executor)

    runner.shutdown()

    assert executor.shut_down is True
    with pytest.raises(RuntimeError):
        runner.submit_text("Some text", "eli5")
