"""Deploy a directory: resolve site, fingerprint, create deploy, upload required, wait.

Phases run strictly in order:
1. Find the site by name (paginated listing).
2. Fingerprint the directory (path -> sha1, sha1 -> file).
3. Create an async deploy announcing every path and digest.
4. Wait for the deploy to be "prepared"; it then lists the digests it lacks.
5. Upload each required digest once, on a bounded worker pool.
6. Wait for the deploy to be "ready".

A deploy is all-or-nothing: any failure aborts the run and is raised to the caller.
"""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from netlifydeploy.api.client import NetlifyAPI
from netlifydeploy.api.models import DeployFiles
from netlifydeploy.deploy.fingerprint import FingerprintIndex, walk
from netlifydeploy.deploy.poller import POLL_INTERVAL, STATE_PREPARED, STATE_READY, wait_for_state
from netlifydeploy.deploy.sites import find_site
from netlifydeploy.deploy.uploader import (
    DEFAULT_QUEUE_SIZE,
    RETRY_BASE_DELAY,
    RETRY_MAX_DURATION,
    UploadJob,
    UploadPool,
)
from netlifydeploy.errors import SiteNotFoundError, UnknownDigestError

log = logging.getLogger(__name__)

# Progress callback: (phase, current, total). Phase: "fingerprint"|"create"|"prepare"|"upload"|"ready". total=0 when unknown.
ProgressCallback = Callable[[str, int, int], None]


@dataclass
class DeployResult:
    deploy_id: str
    deploy_url: str
    site_id: str
    state: str
    file_count: int
    uploaded: int


def _required_jobs(
    api: NetlifyAPI,
    deploy_id: str,
    required: List[str],
    index: FingerprintIndex,
    retry_delay: float,
    retry_max_duration: float,
) -> List[UploadJob]:
    """One job per required digest. Every digest must be one we announced."""
    jobs = []
    for digest in required:
        entry = index.by_digest.get(digest)
        if entry is None:
            raise UnknownDigestError(digest)
        jobs.append(
            UploadJob(
                api,
                deploy_id,
                entry.real_path,
                entry.path,
                base_delay=retry_delay,
                max_duration=retry_max_duration,
            )
        )
    return jobs


def deploy_run(
    api: NetlifyAPI,
    directory: Path,
    site_name: str,
    draft: bool = True,
    branch: str = "",
    title: str = "",
    queue_size: int = DEFAULT_QUEUE_SIZE,
    cancel: Optional[threading.Event] = None,
    on_status: Optional[Callable[[str], None]] = None,
    on_progress: Optional[ProgressCallback] = None,
    poll_interval: float = POLL_INTERVAL,
    retry_delay: float = RETRY_BASE_DELAY,
    retry_max_duration: float = RETRY_MAX_DURATION,
) -> DeployResult:
    """
    Run one deploy of directory to the site named site_name and return its result.

    Raises SiteNotFoundError, FingerprintError, APIError, UnknownDigestError,
    UploadError or DeployCancelledError. Setting cancel from another thread stops
    uploads and polling at the next suspension point.
    """
    cancel = cancel or threading.Event()

    def status(msg: str) -> None:
        if on_status:
            on_status(msg)

    def progress(phase: str, current: int, total: int) -> None:
        if on_progress:
            on_progress(phase, current, total)

    started = time.monotonic()
    log.info("Deploy started (directory=%s, site=%s, draft=%s)", directory, site_name, draft)

    status(f"Looking up site {site_name}…")
    site = find_site(api, site_name)
    if site is None:
        raise SiteNotFoundError(site_name)

    status(f"Fingerprinting {directory}…")
    progress("fingerprint", 0, 0)
    index = walk(directory)
    progress("fingerprint", len(index), len(index))

    status(f"Creating deploy for {len(index)} files…")
    progress("create", 0, 1)
    deploy = api.create_deploy(
        site.id,
        DeployFiles(files=index.by_path, draft=draft, branch=branch or None),
        title=title,
    )
    progress("create", 1, 1)
    log.info("Created deploy %s for site %s (state=%s)", deploy.id, site.id, deploy.state)
    if deploy.state == STATE_READY:
        log.info("Done deploying site to %s", deploy.deploy_url)

    status("Waiting for deploy to be prepared…")
    progress("prepare", 0, 0)
    prepared = wait_for_state(api, deploy.id, STATE_PREPARED, cancel=cancel, interval=poll_interval)
    required = prepared.required_digests
    log.info("Deploy %s needs %d of %d unique files", deploy.id, len(required), len(index.by_digest))

    jobs = _required_jobs(api, deploy.id, required, index, retry_delay, retry_max_duration)
    total = len(jobs)

    def enqueue() -> Iterator[UploadJob]:
        for job in jobs:
            log.info("Enqueuing upload of %s", job.real_path)
            yield job

    pool = UploadPool(
        queue_size,
        cancel=cancel,
        on_job_done=lambda job, completed: progress("upload", completed, total),
    )
    if total:
        status(f"Uploading {total} files…")
        progress("upload", 0, total)
    uploaded = pool.run(enqueue())

    log.info("Done uploading. Waiting for site to be ready")
    status("Waiting for deploy to be ready…")
    progress("ready", 0, 0)
    ready = wait_for_state(api, deploy.id, STATE_READY, cancel=cancel, interval=poll_interval)
    deploy_url = ready.deploy_url or deploy.deploy_url
    log.info("Site is deployed - %s (%.1fs)", deploy_url, time.monotonic() - started)
    return DeployResult(
        deploy_id=deploy.id,
        deploy_url=deploy_url,
        site_id=site.id,
        state=ready.state,
        file_count=len(index),
        uploaded=uploaded,
    )


class DeployEngine:
    """
    Holds the settings for one deploy and runs it; cancel() may be called from
    another thread (e.g. a signal handler) to stop a running deploy.
    """

    def __init__(
        self,
        api: NetlifyAPI,
        directory: Path,
        site_name: str,
        draft: bool = True,
        branch: str = "",
        title: str = "",
        queue_size: int = DEFAULT_QUEUE_SIZE,
        on_status: Optional[Callable[[str], None]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._api = api
        self._directory = Path(directory)
        self._site_name = site_name
        self._draft = draft
        self._branch = branch
        self._title = title
        self._queue_size = queue_size
        self._on_status = on_status
        self._on_progress = on_progress
        self._cancel = threading.Event()

    def cancel(self) -> None:
        self._cancel.set()

    def run(self) -> DeployResult:
        """Run the deploy. Raises on any failure (see deploy_run)."""
        return deploy_run(
            self._api,
            self._directory,
            self._site_name,
            draft=self._draft,
            branch=self._branch,
            title=self._title,
            queue_size=self._queue_size,
            cancel=self._cancel,
            on_status=self._on_status,
            on_progress=self._on_progress,
        )
