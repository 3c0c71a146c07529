from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Dict

import pytest
from git import Actor, Repo

# Keep test runs from writing session logs under ~/.gitritual
os.environ["GITRITUAL_LOG_DISABLE_FILE"] = "1"

AUTHOR = Actor("Test", "test@example.com")

_OVERLAY_ENV_VARS = (
    "GITRITUAL_CWD",
    "GITRITUAL_REMOTE",
    "GITRITUAL_PUSH",
    "GITRITUAL_PATCH_ID_DEPTH",
    "GITRITUAL_SKIP_SELECTION",
    "GITRITUAL_LOG_LEVEL",
    "GITRITUAL_LOG_DIR",
)


def pytest_sessionstart(session):  # type: ignore[override]
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    # Ensure console scripts load in editable style as well
    os.environ.setdefault("PYTHONPATH", str(src))


@pytest.fixture(autouse=True)
def clean_gitritual_env(monkeypatch):
    """Drop config overlay variables inherited from the developer's shell."""
    for name in _OVERLAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def configure_identity(repo: Repo) -> None:
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Test")
        cw.set_value("user", "email", "test@example.com")
        cw.set_value("commit", "gpgsign", "false")


def write_and_commit(repo: Repo, name: str, content: str, message: str) -> str:
    """Write ``name`` in the working tree, commit it and return the sha."""
    path = Path(repo.working_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    return repo.index.commit(message, author=AUTHOR, committer=AUTHOR).hexsha


@pytest.fixture
def commit_file() -> Callable[[Repo, str, str, str], str]:
    return write_and_commit


@pytest.fixture
def origin_path(tmp_path) -> Path:
    """Bare "remote" repository with a single commit on main."""
    seed = Repo.init(tmp_path / "seed")
    configure_identity(seed)
    write_and_commit(seed, "base.txt", "base\n", "Initial commit")
    write_and_commit(seed, "conflict.txt", "line\n", "Add conflict file")
    seed.git.branch("-M", "main")

    bare_path = tmp_path / "origin.git"
    Repo.clone_from(seed.working_dir, bare_path, bare=True)
    return bare_path


@pytest.fixture
def work_repo(tmp_path, origin_path) -> Repo:
    """Clone of ``origin_path`` with main checked out and identity configured."""
    repo = Repo.clone_from(origin_path, tmp_path / "work")
    configure_identity(repo)
    return repo


@pytest.fixture
def other_clone(tmp_path, origin_path) -> Callable[[], Repo]:
    """Factory for a second clone, used to move the remote ahead."""

    def _make() -> Repo:
        repo = Repo.clone_from(origin_path, tmp_path / "other")
        configure_identity(repo)
        return repo

    return _make


@pytest.fixture
def scenario(work_repo) -> Dict[str, str]:
    """Source commits on ``feature`` and three pushed target branches.

    Branches:
        feature: c1 (adds a.txt), c2 (adds b.txt), cx (edits conflict.txt)
        release-a, release-b, hotfix-a: at main, tracking origin
        release-c: at main plus an edit to conflict.txt, tracking origin
    """
    repo = work_repo
    repo.git.checkout("-b", "feature")
    shas = {
        "c1": write_and_commit(repo, "a.txt", "a\n", "Add a"),
        "c2": write_and_commit(repo, "b.txt", "b\n", "Add b"),
        "cx": write_and_commit(repo, "conflict.txt", "feature\n", "Feature edit"),
    }
    repo.git.checkout("main")
    for branch in ("release-a", "release-b", "hotfix-a"):
        repo.git.branch(branch, "main")
    repo.git.checkout("-b", "release-c", "main")
    shas["release_c_edit"] = write_and_commit(repo, "conflict.txt", "release\n", "Release edit")
    repo.git.checkout("main")
    repo.git.push("--set-upstream", "origin", "release-a", "release-b", "hotfix-a", "release-c")
    return shas
