"""Tests for schema migrations and the git safety check."""

import json
import shutil
import subprocess

import pytest


def _config(tckts_dir):
    return json.loads((tckts_dir / "config.json").read_text())


def test_migrate_v1_to_v2_transform():
    from tckts_core import migrate_v1_to_v2

    records = [
        {
            "id": "P-1", "type": "task", "status": "done", "title": "t",
            "created_at": "2024-01-01T00:00:00Z", "started_at": "2024-01-02T00:00:00Z",
            "completed_at": "2024-01-03T00:00:00Z", "priority": "low",
        },
        {"id": "P-2", "type": "bug", "status": "pending", "title": "u", "created_at": "2024-01-04T00:00:00Z"},
    ]

    first, second = migrate_v1_to_v2(records)

    assert list(first) == ["id", "type", "status", "title", "created_at", "history", "priority"]
    assert first["history"] == [
        {"status": "pending", "at": "2024-01-01T00:00:00Z"},
        {"status": "in_progress", "at": "2024-01-02T00:00:00Z"},
        {"status": "done", "at": "2024-01-03T00:00:00Z"},
    ]
    assert second["history"] == [{"status": "pending", "at": "2024-01-04T00:00:00Z"}]
    # Input records are left untouched
    assert "started_at" in records[0]


def test_plan_migrations():
    from tckts_core import MIGRATIONS, MigrationFailed
    from tckts_core.migrations import plan_migrations

    assert [(m.from_version, m.to_version) for m in plan_migrations(1)] == [(1, 2)]
    assert plan_migrations(2) == []

    with pytest.raises(MigrationFailed, match="No migration from schema v2"):
        plan_migrations(1, 3, MIGRATIONS)


def test_run_pending_migrations(v1_project, tckts_dir, fake_git):
    from tckts_core import run_pending_migrations, load_project, Status

    migrated = run_pending_migrations(tckts_dir, git=fake_git)

    assert migrated == ["LEGACY"]
    assert fake_git.calls == ["is_repository", ("status_porcelain", ".", (".lock",))]
    assert _config(tckts_dir) == {"projects": {"LEGACY": {"version": 2}}}

    lines = [json.loads(line) for line in v1_project.read_text().splitlines()]
    assert [line["id"] for line in lines] == ["LEGACY-1", "LEGACY-2", "LEGACY-3"]
    assert all("started_at" not in line and "completed_at" not in line for line in lines)
    assert lines[1]["history"][-1] == {"status": "in_progress", "at": "2024-12-05T09:00:00Z"}

    project = load_project(tckts_dir, "LEGACY")
    assert project.find_by_number(1).completed_at == "2024-12-03T09:00:00Z"
    assert project.find_by_number(2).status == Status.IN_PROGRESS


def test_migration_is_idempotent(v1_project, tckts_dir, fake_git, make_git):
    from tckts_core import run_pending_migrations

    run_pending_migrations(tckts_dir, git=fake_git)
    config_before = (tckts_dir / "config.json").read_text()
    data_before = v1_project.read_text()

    # Nothing pending: git is not consulted at all, even a dirty tree is fine
    dirty = make_git(status=" M LEGACY.tckts\n")
    assert run_pending_migrations(tckts_dir, git=dirty) == []

    assert dirty.calls == []
    assert (tckts_dir / "config.json").read_text() == config_before
    assert v1_project.read_text() == data_before


def test_no_config_means_nothing_to_migrate(tckts_dir, fake_git):
    from tckts_core import run_pending_migrations

    assert run_pending_migrations(tckts_dir, git=fake_git) == []
    assert not (tckts_dir / "config.json").exists()


def test_refuses_outside_git_repository(v1_project, tckts_dir, make_git):
    from tckts_core import run_pending_migrations, NotGitRepo

    before = v1_project.read_text()

    with pytest.raises(NotGitRepo, match="--force"):
        run_pending_migrations(tckts_dir, git=make_git(is_repo=False))

    assert v1_project.read_text() == before
    assert _config(tckts_dir)["projects"]["LEGACY"]["version"] == 1


def test_refuses_with_uncommitted_changes(v1_project, tckts_dir, make_git):
    from tckts_core import run_pending_migrations, UncommittedChanges

    before = v1_project.read_text()

    with pytest.raises(UncommittedChanges):
        run_pending_migrations(tckts_dir, git=make_git(status="?? LEGACY.tckts\n"))

    assert v1_project.read_text() == before
    assert _config(tckts_dir)["projects"]["LEGACY"]["version"] == 1


def test_force_skips_git_check(v1_project, tckts_dir, make_git):
    from tckts_core import run_pending_migrations

    git = make_git(is_repo=False)

    assert run_pending_migrations(tckts_dir, force=True, git=git) == ["LEGACY"]
    assert git.calls == []


def test_migrates_block_text_project(tckts_dir, fake_git):
    from tckts_core import run_pending_migrations, load_project, detect_encoding
    from tckts_core.codec import ENCODING_JSONL

    tckts_dir.mkdir()
    (tckts_dir / "BT.tckts").write_text(
        "# tckts | prefix: BT | version: 1\n"
        "---\nid: BT-1\ntype: task\nstatus: done\ntitle: Old task\n"
        "created_at: 2024-01-01T00:00:00Z\ncompleted_at: 2024-01-02T00:00:00Z\n\nNotes\n---\n"
    )
    (tckts_dir / "config.json").write_text('{"projects": {"BT": {"version": 1}}}')

    assert run_pending_migrations(tckts_dir, git=fake_git) == ["BT"]

    content = (tckts_dir / "BT.tckts").read_text()
    assert detect_encoding(content) == ENCODING_JSONL
    ticket = load_project(tckts_dir, "BT").find_by_number(1)
    assert ticket.description == "Notes"
    assert ticket.completed_at == "2024-01-02T00:00:00Z"


def test_broken_file_fails_migration(tckts_dir, fake_git):
    from tckts_core import run_pending_migrations, MigrationFailed

    tckts_dir.mkdir()
    (tckts_dir / "BAD.tckts").write_text("{oops\n")
    (tckts_dir / "config.json").write_text('{"projects": {"BAD": {"version": 1}}}')

    with pytest.raises(MigrationFailed, match="BAD"):
        run_pending_migrations(tckts_dir, git=fake_git)

    assert _config(tckts_dir)["projects"]["BAD"]["version"] == 1


def test_missing_file_fails_migration(tckts_dir, fake_git):
    from tckts_core import run_pending_migrations, MigrationFailed

    tckts_dir.mkdir()
    (tckts_dir / "config.json").write_text('{"projects": {"GONE": {"version": 1}}}')

    with pytest.raises(MigrationFailed):
        run_pending_migrations(tckts_dir, git=fake_git)


def test_failing_transform_leaves_file_untouched(v1_project, tckts_dir, fake_git):
    from tckts_core import Migration, MigrationFailed, run_pending_migrations

    def explode(records):
        raise KeyError("created_at")

    before = v1_project.read_text()

    with pytest.raises(MigrationFailed, match="from v1 to v2"):
        run_pending_migrations(tckts_dir, git=fake_git, migrations=(Migration(1, 2, explode),))

    assert v1_project.read_text() == before
    assert _config(tckts_dir)["projects"]["LEGACY"]["version"] == 1


def test_migrate_project_at_current_version_is_noop(v1_project, tckts_dir):
    from tckts_core import migrate_project

    before = v1_project.read_text()

    assert migrate_project(tckts_dir, "LEGACY", 2) == 2
    assert v1_project.read_text() == before


def _git(cwd, *args):
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=cwd, check=True, capture_output=True,
    )


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_check_git_safety_with_real_repository(v1_project, tckts_dir, tmp_path, monkeypatch):
    """Clean, dirty and lock-only states of an actual git checkout."""
    from tckts_core import check_git_safety, UncommittedChanges

    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))
    _git(tmp_path, "init", "-q")
    _git(tmp_path, "add", ".tckts")
    _git(tmp_path, "commit", "-q", "-m", "tickets")

    check_git_safety(tckts_dir)

    (tckts_dir / ".lock").write_text("")
    check_git_safety(tckts_dir)

    v1_project.write_text(v1_project.read_text() + "\n")
    with pytest.raises(UncommittedChanges):
        check_git_safety(tckts_dir)


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_check_git_safety_outside_repository(tckts_dir, tmp_path, monkeypatch):
    from tckts_core import check_git_safety, NotGitRepo

    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))
    tckts_dir.mkdir()

    with pytest.raises(NotGitRepo):
        check_git_safety(tckts_dir)


def test_migrated_history_ends_on_status(tckts_dir, fake_git):
    from tckts_core import run_pending_migrations, load_project, Status

    tckts_dir.mkdir()
    (tckts_dir / "ODD.tckts").write_text(
        '{"id":"ODD-1","type":"task","status":"done","title":"t","created_at":"2024-01-01T00:00:00Z"}\n'
    )
    (tckts_dir / "config.json").write_text('{"projects": {"ODD": {"version": 1}}}')

    assert run_pending_migrations(tckts_dir, git=fake_git) == ["ODD"]

    ticket = load_project(tckts_dir, "ODD").find_by_number(1)
    assert [e.status for e in ticket.history] == [Status.PENDING, Status.DONE]
