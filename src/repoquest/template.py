"""Templates decide how a derived branch is reconciled."""

from __future__ import annotations

from typing import TYPE_CHECKING

from repoquest.plugins import hookimpl

if TYPE_CHECKING:
    from repoquest.core import MergeType
    from repoquest.git import GitRepo
    from repoquest.package import QuestPackage


class QuestTemplate:
    """Strategy invoked on a freshly created branch."""

    name = ""

    def apply_patch(self, repo: GitRepo, base_branch: str, target_branch: str) -> MergeType:
        raise NotImplementedError


class StarterTemplate(QuestTemplate):
    """Rebuild starter code from the package's layered patches."""

    name = "starter"

    def __init__(self, package: QuestPackage):
        self.package = package

    def apply_patch(self, repo: GitRepo, base_branch: str, target_branch: str) -> MergeType:
        return repo.apply_patch(self.package.patches_for(target_branch))


class SolutionTemplate(QuestTemplate):
    """Carry the reference solution forward from the upstream mirror."""

    name = "solution"

    def apply_patch(self, repo: GitRepo, base_branch: str, target_branch: str) -> MergeType:
        return repo.cherry_pick(base_branch, target_branch)


class BuiltinTemplatesPlugin:
    """Registers the starter and solution templates."""

    @hookimpl
    def repoquest_get_template_info(self) -> list[dict[str, str]]:
        return [
            {
                "name": StarterTemplate.name,
                "description": "Apply the package's patch stack, replaying it from the initial tag on conflict",
            },
            {
                "name": SolutionTemplate.name,
                "description": "Cherry-pick from upstream, overriding with the reference solution on conflict",
            },
        ]

    @hookimpl
    def repoquest_create_template(
        self, name: str, package: QuestPackage | None
    ) -> QuestTemplate | None:
        if name == StarterTemplate.name:
            if package is None:
                raise ValueError("The starter template needs a package")
            return StarterTemplate(package)
        if name == SolutionTemplate.name:
            return SolutionTemplate()
        return None
