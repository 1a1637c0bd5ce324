"""Tests for the top-level repoquest API."""

from pathlib import Path

import pytest
from git import Repo

from conftest import commit_file, make_package
import repoquest
from repoquest import MergeType, ProjectConfig, derive_branch, save_config
from repoquest import settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "CONFIG_PATH", tmp_path / "settings.yml")


class TestPublicApi:
    """Tests for exported names."""

    def test_version(self):
        """Should expose a version string."""
        assert repoquest.__version__ == "0.1.0"

    def test_all_names_exist(self):
        """Every name in __all__ should be importable."""
        for name in repoquest.__all__:
            assert hasattr(repoquest, name), name


class TestDeriveBranch:
    """Tests for the path-based derive_branch helper."""

    def test_starter_from_package(self, quest_repo):
        """Should default to the starter template when a package is given."""
        head, merge_type = derive_branch(quest_repo.path, "main", "lesson1", package=make_package())

        assert merge_type == MergeType.SUCCESS
        assert quest_repo.current_branch() == "main"
        assert quest_repo.read_file("lesson1", "f.txt") == "v1\n"
        assert quest_repo.repo.commit("lesson1").hexsha == head

    def test_solution_with_configured_upstream(self, quest_repo, upstream_path):
        """Should add the configured upstream remote before replaying."""
        save_config(quest_repo.path, ProjectConfig(template="solution", upstream=str(upstream_path)))

        _, merge_type = derive_branch(quest_repo.path, "lesson1", "lesson2")

        assert merge_type == MergeType.SUCCESS
        assert quest_repo.upstream() == "upstream"
        assert quest_repo.read_file("lesson2", "g.txt") == "upstream g\n"

    def test_refetches_existing_upstream(self, quest_repo, upstream_path):
        """Should see lesson branches pushed upstream after the remote was added."""
        save_config(quest_repo.path, ProjectConfig(template="solution", upstream=str(upstream_path)))
        derive_branch(quest_repo.path, "lesson1", "lesson2")

        upstream = Repo(upstream_path)
        upstream.git.checkout("-b", "lesson3", "lesson2")
        commit_file(upstream, "h.txt", "upstream h\n", "Add h.txt")
        upstream.git.checkout("main")

        _, merge_type = derive_branch(quest_repo.path, "lesson2", "lesson3")

        assert merge_type == MergeType.SUCCESS
        assert quest_repo.read_file("lesson3", "h.txt") == "upstream h\n"
        assert quest_repo.current_branch() == "main"

    def test_explicit_template_overrides_config(self, quest_repo, upstream_path):
        """Should prefer the template argument over the project config."""
        save_config(quest_repo.path, ProjectConfig(template="solution"))

        _, merge_type = derive_branch(
            Path(quest_repo.path), "main", "lesson2", package=make_package(), template="starter"
        )

        assert merge_type == MergeType.STARTER_RESET
        assert quest_repo.read_file("lesson2", "f.txt") == "v2\n"
