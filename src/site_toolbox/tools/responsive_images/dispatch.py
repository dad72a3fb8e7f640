"""Render dispatchers: the injected strategy that turns jobs into pixels.

A dispatcher receives one ``RenderJob`` per source image (all of its
variants batched as operations) and returns a single ``Future`` shared by
every variant.  Identical jobs are deduplicated by content digest plus
operation list, so dispatching the same job again returns the same future
while it is pending or has succeeded.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol

from site_toolbox.tools.responsive_images._digest import stable_json
from site_toolbox.tools.responsive_images._render import process_file

logger = logging.getLogger(__name__)

IMAGE_PROCESSING_JOB_NAME = "IMAGE_PROCESSING"


@dataclass(frozen=True)
class RenderOperation:
    """One output file of a job, relative to the job's ``output_dir``."""

    output_path: str
    args: Mapping[str, Any] = field(hash=False)


@dataclass(frozen=True)
class RenderJob:
    """All pending renders of one source image."""

    input_path: Path
    output_dir: Path
    operations: tuple[RenderOperation, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)
    name: str = IMAGE_PROCESSING_JOB_NAME

    @property
    def key(self) -> str:
        """Deduplication key: content digest plus the serialised operations."""
        digest = self.metadata.get("content_digest") or str(self.input_path)
        operations = [[op.output_path, dict(op.args)] for op in self.operations]
        return f"{digest}{stable_json(operations)}"


class Dispatcher(Protocol):
    """Capability to execute render jobs asynchronously."""

    def dispatch(self, job: RenderJob) -> Future[None]:
        """Schedule *job*; the future resolves once every operation is written."""


def run_job(job: RenderJob) -> None:
    """Execute every operation of *job* in the current thread.

    Operations whose output file already exists are skipped.
    """
    pending = [
        (op.output_path, op.args) for op in job.operations if not (job.output_dir / op.output_path).exists()
    ]
    if not pending:
        logger.debug("Job %s: all variants of %s already exist", job.name, job.input_path.name)
        return
    process_file(job.input_path, job.output_dir, pending)
    logger.info("Job %s: rendered %d variants of %s", job.name, len(pending), job.input_path.name)


class _DeduplicatingDispatcher:
    """Shared bookkeeping: one future per distinct job key.

    Failed or cancelled jobs are forgotten, so dispatching the same job
    again renders it anew.  Rendering never happens under the lock.
    """

    def __init__(self) -> None:
        self._futures: dict[str, Future[None]] = {}
        self._lock = threading.Lock()

    def dispatch(self, job: RenderJob) -> Future[None]:
        key = job.key
        with self._lock:
            existing = self._futures.get(key)
            if existing is not None:
                logger.debug("Job for %s already dispatched, reusing its future", job.input_path.name)
                return existing
            future: Future[None] = Future()
            self._futures[key] = future
        future.add_done_callback(lambda done: self._forget_cancelled(key, done))
        try:
            self._start(key, job, future)
        except Exception as exc:
            self._forget(key, future)
            future.set_exception(exc)
            raise
        return future

    def _run(self, key: str, job: RenderJob, future: Future[None]) -> None:
        """Run *job* and resolve *future*; a failure is forgotten before waiters wake."""
        if not future.set_running_or_notify_cancel():
            return
        try:
            run_job(job)
        except Exception as exc:
            self._forget(key, future)
            future.set_exception(exc)
        else:
            future.set_result(None)

    def _forget(self, key: str, future: Future[None]) -> None:
        with self._lock:
            if self._futures.get(key) is future:
                del self._futures[key]
                logger.debug("Dropped unfinished job %s from the dispatch table", key[:16])

    def _forget_cancelled(self, key: str, future: Future[None]) -> None:
        if future.cancelled():
            self._forget(key, future)

    def _start(self, key: str, job: RenderJob, future: Future[None]) -> None:
        raise NotImplementedError

    @property
    def dispatched_count(self) -> int:
        """Return the number of distinct jobs that are pending or succeeded."""
        with self._lock:
            return len(self._futures)


class InlineDispatcher(_DeduplicatingDispatcher):
    """Render synchronously; the returned future is already resolved.

    Failures are stored on the future rather than raised, exactly as an
    asynchronous dispatcher would report them.
    """

    def _start(self, key: str, job: RenderJob, future: Future[None]) -> None:
        self._run(key, job, future)


class ThreadPoolDispatcher(_DeduplicatingDispatcher):
    """Render in a background ``ThreadPoolExecutor``.

    Args:
        max_workers: Worker thread count (``None`` lets the executor decide).
    """

    def __init__(self, max_workers: int | None = None) -> None:
        super().__init__()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="site-toolbox-render")

    def _start(self, key: str, job: RenderJob, future: Future[None]) -> None:
        self._executor.submit(self._run, key, job, future)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; optionally wait for pending ones."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> ThreadPoolDispatcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)
