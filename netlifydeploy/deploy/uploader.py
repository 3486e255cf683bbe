"""Bounded-parallelism upload of required files, with GOAWAY retry per file.

A fixed number of worker threads consume a queue whose capacity equals the
worker count, so the producer blocks while every worker is busy and at most
queue_size uploads (and open files) are in flight. The first failing job sets
the shared cancel event: queued jobs are drained without running, retry sleeps
and in-progress waits return early, and the pool re-raises that first failure.
"""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, TypeVar

from netlifydeploy.api.client import NetlifyAPI
from netlifydeploy.errors import APIError, DeployCancelledError, UploadError
from netlifydeploy.network import is_goaway

log = logging.getLogger(__name__)

T = TypeVar("T")

# First retry after 5s; give up once 90s have been spent retrying
RETRY_BASE_DELAY = 5.0
RETRY_MAX_DURATION = 90.0

DEFAULT_QUEUE_SIZE = 5

_STOP = object()


def fibonacci_delays(base: float) -> Iterator[float]:
    """base, base, 2*base, 3*base, 5*base, ..."""
    a, b = base, base
    while True:
        yield a
        a, b = b, a + b


def retry_on_goaway(
    fn: Callable[[], T],
    cancel: threading.Event,
    base_delay: float = RETRY_BASE_DELAY,
    max_duration: float = RETRY_MAX_DURATION,
    clock: Callable[[], float] = time.monotonic,
    wait: Optional[Callable[[float], bool]] = None,
) -> T:
    """
    Call fn, retrying with Fibonacci backoff while it fails with an HTTP/2 GOAWAY.
    Delays are truncated so total time since the first attempt stays within
    max_duration; after that the last GOAWAY error is raised. Any other error is
    raised on the first attempt. wait(delay) returns True when cancelled.
    """
    wait = wait or cancel.wait
    start = clock()
    delays = fibonacci_delays(base_delay)
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as e:
            if not is_goaway(e):
                raise
            remaining = max_duration - (clock() - start)
            if remaining <= 0:
                log.warning("GOAWAY retries exhausted after %d attempts", attempt)
                raise
            delay = min(next(delays), remaining)
            log.warning("GOAWAY from server, retry in %.1fs (attempt %d)", delay, attempt)
            if wait(delay):
                raise DeployCancelledError("Cancelled during upload retry") from e


class UploadJob:
    """
    Upload of one local file to one deploy path. The file is opened only when the
    job runs, so open handles are bounded by the number of workers.
    """

    def __init__(
        self,
        api: NetlifyAPI,
        deploy_id: str,
        real_path: Path,
        uri: str,
        base_delay: float = RETRY_BASE_DELAY,
        max_duration: float = RETRY_MAX_DURATION,
        clock: Callable[[], float] = time.monotonic,
        wait: Optional[Callable[[float], bool]] = None,
    ) -> None:
        self.api = api
        self.deploy_id = deploy_id
        self.real_path = Path(real_path)
        self.uri = uri
        self._base_delay = base_delay
        self._max_duration = max_duration
        self._clock = clock
        self._wait = wait

    def __repr__(self) -> str:
        return f"UploadJob({self.uri!r} <- {str(self.real_path)!r})"

    def run(self, cancel: threading.Event) -> None:
        try:
            f = open(self.real_path, "rb")
        except OSError as e:
            raise UploadError(self.uri, f"Unable to open file: {e}") from e
        with f:

            def attempt() -> object:
                # Body may be partly consumed by a failed attempt
                f.seek(0)
                return self.api.upload_file(self.deploy_id, self.uri, f)

            try:
                retry_on_goaway(
                    attempt,
                    cancel,
                    base_delay=self._base_delay,
                    max_duration=self._max_duration,
                    clock=self._clock,
                    wait=self._wait,
                )
            except APIError as e:
                raise UploadError(self.uri, e.message) from e
            except OSError as e:
                # Local read failure while the body was streaming
                raise UploadError(self.uri, f"Unable to read file: {e}") from e
        log.debug("Uploaded %s", self.uri)


class UploadPool:
    """Runs upload jobs on exactly `concurrency` worker threads."""

    def __init__(
        self,
        concurrency: int = DEFAULT_QUEUE_SIZE,
        cancel: Optional[threading.Event] = None,
        on_job_done: Optional[Callable[[UploadJob, int], None]] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.cancel = cancel or threading.Event()
        self._on_job_done = on_job_done
        self._lock = threading.Lock()
        self._errors: List[BaseException] = []
        self._completed = 0

    @property
    def completed(self) -> int:
        return self._completed

    def _fail(self, job: UploadJob, exc: BaseException) -> None:
        with self._lock:
            first = not self._errors
            self._errors.append(exc)
        if first:
            log.error("Upload %s failed, cancelling remaining uploads: %s", job.uri, exc)
        self.cancel.set()

    def _worker(self, jobs: "queue.Queue[object]") -> None:
        while True:
            job = jobs.get()
            try:
                if job is _STOP:
                    return
                if self.cancel.is_set():
                    continue
                try:
                    job.run(self.cancel)  # type: ignore[attr-defined]
                    with self._lock:
                        self._completed += 1
                        completed = self._completed
                    # A failing progress callback fails the run like a failing upload
                    if self._on_job_done:
                        self._on_job_done(job, completed)  # type: ignore[arg-type]
                except Exception as e:
                    self._fail(job, e)  # type: ignore[arg-type]
            finally:
                jobs.task_done()

    def run(self, jobs: Iterable[UploadJob]) -> int:
        """
        Enqueue every job, wait for the workers, and return the number uploaded.
        Raises the first job failure, or DeployCancelledError if cancelled from outside.
        """
        q: "queue.Queue[object]" = queue.Queue(maxsize=self.concurrency)
        try:
            with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="upload") as executor:
                workers = [executor.submit(self._worker, q) for _ in range(self.concurrency)]
                try:
                    for job in jobs:
                        if self.cancel.is_set():
                            break
                        q.put(job)
                except BaseException:
                    self.cancel.set()
                    raise
                finally:
                    # Workers never stop consuming before _STOP, so these puts cannot deadlock
                    for _ in workers:
                        q.put(_STOP)
        except BaseException:
            # Interrupt or a failing producer: stop workers from starting new uploads
            self.cancel.set()
            raise
        for w in workers:
            w.result()
        if self._errors:
            raise self._errors[0]
        if self.cancel.is_set():
            raise DeployCancelledError("Upload cancelled")
        return self._completed
