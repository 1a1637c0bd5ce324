"""Tests for repoquest config module."""

from git import Repo

from repoquest.config import ProjectConfig, load_config, save_config


class TestProjectConfig:
    """Tests for ProjectConfig dataclass."""

    def test_default_config(self):
        """Should have None defaults."""
        config = ProjectConfig()
        assert config.template is None
        assert config.upstream is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_from_nonexistent_dir(self, tmp_path):
        """Should return empty config for nonexistent directory."""
        assert load_config(tmp_path / "nonexistent") == ProjectConfig()

    def test_load_from_non_git_dir(self, tmp_path):
        """Should return empty config for non-git directory."""
        assert load_config(tmp_path) == ProjectConfig()

    def test_load_from_git_repo_without_config(self, tmp_path):
        """Should return empty config for git repo without repoquest config."""
        Repo.init(tmp_path)
        assert load_config(tmp_path) == ProjectConfig()

    def test_load_from_git_repo_with_config(self, tmp_path):
        """Should load config from git repo."""
        repo = Repo.init(tmp_path)
        with repo.config_writer() as writer:
            writer.set_value("repoquest", "template", "solution")
            writer.set_value("repoquest", "upstream", "https://example.com/quest.git")

        config = load_config(tmp_path)
        assert config.template == "solution"
        assert config.upstream == "https://example.com/quest.git"

    def test_load_partial_config(self, tmp_path):
        """Should handle partial config."""
        repo = Repo.init(tmp_path)
        with repo.config_writer() as writer:
            writer.set_value("repoquest", "template", "starter")

        config = load_config(tmp_path)
        assert config.template == "starter"
        assert config.upstream is None


class TestSaveConfig:
    """Tests for save_config function."""

    def test_save_to_nonexistent_dir(self, tmp_path):
        """Should not raise for nonexistent directory."""
        save_config(tmp_path / "nonexistent", ProjectConfig(template="starter"))

    def test_save_to_non_git_dir(self, tmp_path):
        """Should not raise for non-git directory."""
        save_config(tmp_path, ProjectConfig(template="starter"))
        assert not (tmp_path / ".git").exists()

    def test_save_and_load_config(self, tmp_path):
        """Should save config that can be loaded back."""
        Repo.init(tmp_path)
        config = ProjectConfig(template="solution", upstream="/srv/upstream.git")
        save_config(tmp_path, config)
        assert load_config(tmp_path) == config

    def test_update_keeps_unset_values(self, tmp_path):
        """Should leave keys alone that the new config does not set."""
        Repo.init(tmp_path)
        save_config(tmp_path, ProjectConfig(template="starter", upstream="/srv/upstream.git"))
        save_config(tmp_path, ProjectConfig(template="solution"))

        loaded = load_config(tmp_path)
        assert loaded.template == "solution"
        assert loaded.upstream == "/srv/upstream.git"
