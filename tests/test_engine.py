"""End-to-end deploy runs against the in-memory API stub."""

import hashlib
from pathlib import Path

import pytest

from netlifydeploy.api.models import Site
from netlifydeploy.deploy.engine import DeployEngine, deploy_run
from netlifydeploy.errors import APIError, SiteNotFoundError, UnknownDigestError, UploadError

FAST = {"poll_interval": 0, "retry_delay": 0.01, "retry_max_duration": 0.2}


def _sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def _goaway() -> APIError:
    return APIError("upload file", "RemoteProtocolError: server sent GOAWAY")


def test_empty_directory_deploys_nothing(tmp_path: Path, fake_api_factory) -> None:
    """Empty dir: files={}, nothing required, no uploads, ends ready."""
    public = tmp_path / "public"
    public.mkdir()
    api = fake_api_factory(required=[])

    result = deploy_run(api, public, "my-site", **FAST)

    assert api.created[0]["body"]["files"] == {}
    assert api.upload_calls == []
    assert result.state == "ready"
    assert result.uploaded == 0
    assert result.file_count == 0


def test_single_file_already_uploaded(tmp_path: Path, fake_api_factory) -> None:
    public = tmp_path / "public"
    public.mkdir()
    (public / "index.html").write_bytes(b"")
    api = fake_api_factory(required=[])

    result = deploy_run(api, public, "my-site", **FAST)

    assert api.created[0]["body"]["files"] == {"/index.html": "da39a3ee5e6b4b0d3255bfef95601890afd80709"}
    assert api.upload_calls == []
    assert result.deploy_url.startswith("https://")


def test_two_files_one_required(tmp_path: Path, fake_api_factory) -> None:
    """Only the required digest is PUT, to its own path, with its own bytes."""
    public = tmp_path / "public"
    public.mkdir()
    (public / "a").write_bytes(b"X")
    (public / "b").write_bytes(b"Y")
    api = fake_api_factory(required=[_sha1(b"Y")])

    result = deploy_run(api, public, "my-site", **FAST)

    assert api.upload_calls == ["/b"]
    assert api.uploaded == {"/b": b"Y"}
    assert result.uploaded == 1
    assert result.state == "ready"


def test_goaway_then_success(tmp_path: Path, fake_api_factory) -> None:
    public = tmp_path / "public"
    public.mkdir()
    (public / "a").write_bytes(b"X")
    (public / "b").write_bytes(b"Y")
    api = fake_api_factory(required=[_sha1(b"Y")])
    api.upload_failures["/b"] = [_goaway(), _goaway()]

    result = deploy_run(api, public, "my-site", **FAST)

    assert api.upload_calls == ["/b", "/b", "/b"]
    assert api.uploaded == {"/b": b"Y"}
    assert result.state == "ready"


def test_goaway_beyond_budget_fails_and_cancels_siblings(tmp_path: Path, fake_api_factory) -> None:
    """Endless GOAWAY exhausts the retry window; the run fails and never waits for ready."""
    public = tmp_path / "public"
    public.mkdir()
    for name in ("a", "b", "c"):
        (public / name).write_bytes(name.encode())
    api = fake_api_factory(required=[_sha1(b"a"), _sha1(b"b"), _sha1(b"c")])
    api.upload_failures["/a"] = [_goaway() for _ in range(1000)]

    with pytest.raises(UploadError, match="GOAWAY"):
        deploy_run(api, public, "my-site", queue_size=1, **FAST)

    assert set(api.upload_calls) == {"/a"}
    assert api.uploaded == {}
    assert api.get_calls == 1


def test_site_not_found_before_any_deploy(tmp_path: Path, fake_api_factory) -> None:
    api = fake_api_factory(sites=[[]])
    with pytest.raises(SiteNotFoundError, match="No site found for my-site"):
        deploy_run(api, tmp_path, "my-site", **FAST)
    assert api.created == []


def test_site_found_on_second_page(tmp_path: Path, fake_api_factory) -> None:
    api = fake_api_factory(sites=[[Site(id="s0", name="other")], [Site(id="s9", name="my-site")]])
    result = deploy_run(api, tmp_path, "my-site", **FAST)
    assert api.created[0]["site_id"] == "s9"
    assert result.site_id == "s9"


def test_unknown_required_digest_fails(tmp_path: Path, fake_api_factory) -> None:
    """The remote asking for a digest we never announced is an error, not a silent skip."""
    (tmp_path / "a").write_bytes(b"a")
    api = fake_api_factory(required=["f" * 40])
    with pytest.raises(UnknownDigestError):
        deploy_run(api, tmp_path, "my-site", **FAST)
    assert api.upload_calls == []


def test_duplicate_content_uploaded_once(site_dir: Path, fake_api_factory) -> None:
    """index.html and copy.html share a digest: one PUT satisfies both."""
    digest = _sha1(b"<h1>hello</h1>")
    api = fake_api_factory(required=[digest])
    deploy_run(api, site_dir, "my-site", **FAST)
    assert len(api.upload_calls) == 1
    assert api.upload_calls[0] in {"/index.html", "/copy.html"}
    assert set(api.created[0]["body"]["files"]) == {"/index.html", "/copy.html", "/css/site.css"}


def test_deploy_options_sent(site_dir: Path, fake_api_factory) -> None:
    api = fake_api_factory()
    deploy_run(api, site_dir, "my-site", draft=False, branch="preview", title="ci #42", **FAST)
    created = api.created[0]
    assert created["title"] == "ci #42"
    assert created["body"]["draft"] is False
    assert created["body"]["branch"] == "preview"
    assert created["body"]["async"] is True


def test_create_already_ready_still_completes(site_dir: Path, fake_api_factory) -> None:
    api = fake_api_factory(create_state="ready")
    result = deploy_run(api, site_dir, "my-site", **FAST)
    assert result.state == "ready"


def test_status_and_progress_callbacks(site_dir: Path, fake_api_factory) -> None:
    api = fake_api_factory(required=[_sha1(b"body { color: red }")])
    statuses = []
    phases = []
    deploy_run(
        api,
        site_dir,
        "my-site",
        on_status=statuses.append,
        on_progress=lambda phase, cur, total: phases.append((phase, cur, total)),
        **FAST,
    )
    assert statuses
    assert ("upload", 1, 1) in phases
    assert phases[-1][0] == "ready"


def test_deploy_engine_run_delegates_to_deploy_run(site_dir: Path, fake_api_factory, monkeypatch) -> None:
    """DeployEngine.run() passes its settings and cancel event through."""
    from netlifydeploy.deploy import engine

    captured = {}

    def fake_deploy_run(api, directory, site_name, **kwargs):
        captured.update(kwargs, api=api, directory=directory, site_name=site_name)
        return "result"

    monkeypatch.setattr(engine, "deploy_run", fake_deploy_run)
    api = fake_api_factory()
    eng = DeployEngine(api, site_dir, "my-site", queue_size=7, draft=False)
    assert eng.run() == "result"
    assert captured["site_name"] == "my-site"
    assert captured["queue_size"] == 7
    assert captured["draft"] is False
    eng.cancel()
    assert captured["cancel"].is_set()


def test_failing_progress_callback_aborts_upload(tmp_path: Path, fake_api_factory) -> None:
    """An on_progress that raises during uploads fails the run and never waits for ready."""
    payloads = [f"file {i}".encode() for i in range(5)]
    for i, data in enumerate(payloads):
        (tmp_path / f"f{i}").write_bytes(data)
    api = fake_api_factory(required=[_sha1(d) for d in payloads])

    def on_progress(phase, current, total):
        if phase == "upload" and current >= 1:
            raise RuntimeError("progress sink closed")

    with pytest.raises(RuntimeError, match="progress sink closed"):
        deploy_run(api, tmp_path, "my-site", queue_size=1, on_progress=on_progress, **FAST)
    assert len(api.upload_calls) == 1
    assert api.get_calls == 1
