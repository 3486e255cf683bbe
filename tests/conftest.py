"""Shared fixtures: isolated environment and an in-memory Netlify API stub."""

import hashlib
import logging
import threading
import time
from typing import Dict, List, Optional

import pytest

from netlifydeploy.api.models import Deploy, DeployFiles, Site

DEPLOY_URL = "https://deploy-1--my-site.netlify.app"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep NETLIFY_* from the developer's shell out of the tests."""
    import os

    for name in list(os.environ):
        if name.startswith("NETLIFY_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """main._setup_logging binds handlers to CliRunner streams; drop them after each test."""
    yield
    root = logging.getLogger("netlifydeploy")
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()


class FakeNetlifyAPI:
    """
    Stub remote: one site, one deploy. The first get_deploy reports "prepared" with
    the configured required digests; later calls report "ready" once every required
    digest has been uploaded, "uploading" before that.
    """

    def __init__(
        self,
        sites: Optional[List[List[Site]]] = None,
        required: Optional[List[str]] = None,
        create_state: str = "uploading",
        upload_delay: float = 0.0,
    ) -> None:
        self.site_pages = sites if sites is not None else [[Site(id="site-1", name="my-site")], []]
        self.required = list(required or [])
        self.create_state = create_state
        self.upload_delay = upload_delay
        # path -> list of exceptions raised by successive upload attempts before success
        self.upload_failures: Dict[str, List[Exception]] = {}
        self.list_calls: List[tuple] = []
        self.created: List[dict] = []
        self.get_calls = 0
        self.upload_calls: List[str] = []
        self.uploaded: Dict[str, bytes] = {}
        self.max_in_flight = 0
        self._in_flight = 0
        self._prepared_sent = False
        self._lock = threading.Lock()

    def list_sites(self, page: int, per_page: int) -> List[Site]:
        self.list_calls.append((page, per_page))
        if page - 1 < len(self.site_pages):
            return self.site_pages[page - 1]
        return []

    def create_deploy(self, site_id: str, deploy: DeployFiles, title: str = "") -> Deploy:
        self.created.append({"site_id": site_id, "body": deploy.to_json(), "title": title})
        return Deploy(id="deploy-1", state=self.create_state, deploy_url=DEPLOY_URL)

    def get_deploy(self, deploy_id: str) -> Deploy:
        with self._lock:
            self.get_calls += 1
            if not self._prepared_sent:
                self._prepared_sent = True
                return Deploy(id=deploy_id, state="prepared", deploy_url=DEPLOY_URL, required=self.required)
            uploaded = {hashlib.sha1(b).hexdigest() for b in self.uploaded.values()}
            missing = [d for d in self.required if d not in uploaded]
        state = "uploading" if missing else "ready"
        return Deploy(id=deploy_id, state=state, deploy_url=DEPLOY_URL, required=missing)

    def upload_file(self, deploy_id: str, path: str, body) -> dict:
        with self._lock:
            self.upload_calls.append(path)
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
            failures = self.upload_failures.get(path) or []
            failure = failures.pop(0) if failures else None
        try:
            if self.upload_delay:
                time.sleep(self.upload_delay)
            if failure is not None:
                raise failure
            data = body if isinstance(body, bytes) else body.read()
            with self._lock:
                self.uploaded[path] = data
            return {"id": path}
        finally:
            with self._lock:
                self._in_flight -= 1


@pytest.fixture
def fake_api_factory():
    """Return the FakeNetlifyAPI class so tests can build stubs with custom pages/required."""
    return FakeNetlifyAPI


@pytest.fixture
def site_dir(tmp_path):
    """A small site: /index.html, /css/site.css, and a duplicate of index.html."""
    root = tmp_path / "public"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_bytes(b"<h1>hello</h1>")
    (root / "css" / "site.css").write_bytes(b"body { color: red }")
    (root / "copy.html").write_bytes(b"<h1>hello</h1>")
    return root
