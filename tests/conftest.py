"""Shared pytest fixtures for tckts tests."""

from datetime import datetime, timedelta, timezone

import pytest


@pytest.fixture
def tckts_dir(tmp_path, monkeypatch):
    """Point TCKTS_DIR at a fresh directory under tmp_path.

    The directory itself is not created; init_project does that.
    """
    path = tmp_path / ".tckts"
    monkeypatch.setenv("TCKTS_DIR", str(path))
    monkeypatch.chdir(tmp_path)
    return path


@pytest.fixture
def clock(monkeypatch):
    """Replace the ticket clock with one that ticks one second per call.

    Returns a list that collects every timestamp handed out.
    """
    start = datetime(2024, 12, 23, 10, 30, 0, tzinfo=timezone.utc)
    issued = []

    def fake_timestamp():
        stamp = (start + timedelta(seconds=len(issued))).strftime("%Y-%m-%dT%H:%M:%SZ")
        issued.append(stamp)
        return stamp

    monkeypatch.setattr("tckts_core.models.get_iso_timestamp", fake_timestamp)
    return issued


class FakeGit:
    """Stand-in for GitClient that records calls instead of running git."""

    def __init__(self, is_repo=True, status=""):
        self.is_repo = is_repo
        self.status = status
        self.calls = []

    def is_repository(self):
        self.calls.append("is_repository")
        return self.is_repo

    def status_porcelain(self, path=".", exclude=()):
        self.calls.append(("status_porcelain", path, tuple(exclude)))
        return self.status


@pytest.fixture
def fake_git():
    """A clean fake git repository."""
    return FakeGit()


@pytest.fixture
def v1_project(tckts_dir):
    """Write a schema v1 project LEGACY to disk and register it at version 1."""
    tckts_dir.mkdir(parents=True, exist_ok=True)
    (tckts_dir / "LEGACY.tckts").write_text(
        '{"id":"LEGACY-1","type":"task","status":"done","title":"Set up CI",'
        '"created_at":"2024-12-01T09:00:00Z","started_at":"2024-12-02T09:00:00Z",'
        '"completed_at":"2024-12-03T09:00:00Z"}\n'
        '{"id":"LEGACY-2","type":"feature","status":"in_progress","title":"Login",'
        '"created_at":"2024-12-04T09:00:00Z","started_at":"2024-12-05T09:00:00Z",'
        '"depends":["LEGACY-1"],"priority":"high","description":"OAuth flow"}\n'
        '{"id":"LEGACY-3","type":"bug","status":"pending","title":"Fix typo",'
        '"created_at":"2024-12-06T09:00:00Z"}\n'
    )
    (tckts_dir / "config.json").write_text('{"projects": {"LEGACY": {"version": 1}}}\n')
    return tckts_dir / "LEGACY.tckts"


@pytest.fixture
def make_git():
    """Factory for FakeGit instances with a chosen repository state."""
    return FakeGit
