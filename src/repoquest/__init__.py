"""repoquest - Derive lesson branches from a shared upstream history."""

from __future__ import annotations

from pathlib import Path

from repoquest.config import ProjectConfig, load_config, save_config
from repoquest.core import MergeType
from repoquest.git import (
    FallbackError,
    GitRepo,
    HousekeepingError,
    PublishError,
    UPSTREAM,
    TrunkCheckoutError,
    VcsError,
)
from repoquest.package import QuestPackage, QuestStage
from repoquest.plugins import get_template, hookimpl, hookspec
from repoquest.template import QuestTemplate, SolutionTemplate, StarterTemplate

__version__ = "0.1.0"

__all__ = [
    # Core types
    "MergeType",
    "QuestPackage",
    "QuestStage",
    "ProjectConfig",
    # Repository
    "GitRepo",
    "VcsError",
    "FallbackError",
    "HousekeepingError",
    "PublishError",
    "TrunkCheckoutError",
    # Templates and plugins
    "QuestTemplate",
    "StarterTemplate",
    "SolutionTemplate",
    "hookspec",
    "hookimpl",
    "get_template",
    # Main functions
    "derive_branch",
    "load_config",
    "save_config",
]


def derive_branch(
    repo_path: Path | str,
    base_branch: str,
    target_branch: str,
    package: QuestPackage | None = None,
    template: str | None = None,
) -> tuple[str, MergeType]:
    """Derive ``target_branch`` in the clone at ``repo_path``.

    Args:
        repo_path: Working directory of the quest clone, checked out on main.
        base_branch: Lesson branch the target follows.
        target_branch: Branch to create and publish.
        package: Quest package supplying the patch stack, if any.
        template: Template name. Defaults to the project config, then to
            'starter' when a package is given and 'solution' otherwise.

    Returns:
        Tuple of (head commit of the new branch, merge type).
    """
    repo_path = Path(repo_path)
    config = load_config(repo_path)
    if template is None:
        template = config.template
    if template is None:
        template = "starter" if package is not None else "solution"

    quest_template = get_template(template, package)
    repo = GitRepo(repo_path)
    if repo.upstream() is not None:
        repo.fetch(UPSTREAM)
    elif config.upstream:
        repo.setup_upstream(config.upstream)
    return repo.derive_branch(quest_template, base_branch, target_branch)
