"""Per-repository configuration stored in git config."""

from __future__ import annotations

import configparser
from dataclasses import dataclass
from pathlib import Path

from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

SECTION = "repoquest"


@dataclass
class ProjectConfig:
    """Configuration for a quest repository."""

    template: str | None = None
    upstream: str | None = None


def load_config(repo_dir: Path) -> ProjectConfig:
    """Load project configuration from git config.

    Args:
        repo_dir: The quest repository's working directory.

    Returns:
        ProjectConfig with saved settings, or defaults if no config exists.
    """
    if not repo_dir.exists():
        return ProjectConfig()

    try:
        reader = Repo(repo_dir).config_reader()
    except (InvalidGitRepositoryError, NoSuchPathError):
        return ProjectConfig()

    values = {}
    for key in ("template", "upstream"):
        try:
            values[key] = reader.get_value(SECTION, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            values[key] = None

    return ProjectConfig(**values)


def save_config(repo_dir: Path, config: ProjectConfig) -> None:
    """Save project configuration to git config.

    Only values that are set are written; existing keys are left alone.
    """
    if not repo_dir.exists():
        return

    try:
        repo = Repo(repo_dir)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return

    with repo.config_writer() as writer:
        if config.template is not None:
            writer.set_value(SECTION, "template", config.template)
        if config.upstream is not None:
            writer.set_value(SECTION, "upstream", config.upstream)
