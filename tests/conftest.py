"""Shared fixtures: real git repositories on disk."""

from pathlib import Path

import pytest
from git import Repo

from repoquest.git import GitRepo
from repoquest.package import QuestPackage, QuestStage
from repoquest.plugins import reset_plugin_manager

P1 = """\
diff --git a/f.txt b/f.txt
--- a/f.txt
+++ b/f.txt
@@ -1 +1 @@
-v0
+v1
"""

P2 = """\
diff --git a/f.txt b/f.txt
--- a/f.txt
+++ b/f.txt
@@ -1 +1 @@
-v1
+v2
"""

UPSTREAM_G = "upstream g\n"


def configure_identity(repo: Repo) -> None:
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Quest Author")
        writer.set_value("user", "email", "author@example.com")
        writer.set_value("commit", "gpgsign", "false")
        writer.set_value("tag", "gpgsign", "false")


def commit_file(repo: Repo, rel_path: str, contents: str, message: str) -> str:
    """Write a file, commit it, and return the new commit sha."""
    path = Path(repo.working_dir) / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents)
    repo.git.add(rel_path)
    repo.git.commit("-m", message)
    return repo.head.commit.hexsha


def make_package() -> QuestPackage:
    return QuestPackage(
        initial={Path("f.txt"): "v0\n"},
        stages=[QuestStage("lesson1", P1), QuestStage("lesson2", P2)],
        config={"title": "Demo quest"},
    )


@pytest.fixture(autouse=True)
def fresh_plugin_manager():
    reset_plugin_manager()
    yield
    reset_plugin_manager()


@pytest.fixture
def make_clone(tmp_path):
    """Factory for an empty clone on branch main with a bare origin."""

    def _make(name: str = "work") -> Path:
        origin_path = tmp_path / f"{name}-origin.git"
        Repo.init(origin_path, bare=True)

        path = tmp_path / name
        repo = Repo.init(path)
        repo.git.symbolic_ref("HEAD", "refs/heads/main")
        configure_identity(repo)
        repo.create_remote("origin", str(origin_path))
        return path

    return _make


@pytest.fixture
def make_quest_repo(make_clone):
    """Factory for a seeded quest clone: main at the initial tag, plus meta."""

    def _make(name: str = "work") -> GitRepo:
        repo = GitRepo(make_clone(name))
        repo.write_initial_files(make_package())
        return repo

    return _make


@pytest.fixture
def quest_repo(make_quest_repo) -> GitRepo:
    return make_quest_repo()


@pytest.fixture
def upstream_path(tmp_path) -> Path:
    """Reference solution repo: lesson2 is lesson1 plus a commit adding g.txt."""
    path = tmp_path / "upstream"
    repo = Repo.init(path)
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    configure_identity(repo)

    commit_file(repo, "f.txt", "v0\n", "Initial commit")
    repo.git.branch("lesson1")
    repo.git.checkout("-b", "lesson2")
    commit_file(repo, "g.txt", UPSTREAM_G, "Add g.txt")
    repo.git.checkout("main")
    return path


@pytest.fixture
def solution_repo(quest_repo, upstream_path) -> GitRepo:
    quest_repo.setup_upstream(str(upstream_path))
    return quest_repo
