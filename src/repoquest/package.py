"""Quest package data: starter files, layered patches and config."""

from __future__ import annotations

import gzip
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class QuestStage:
    """One lesson: the branch it produces and the patch that gets there."""

    branch: str
    patch: str


@dataclass
class QuestPackage:
    """Everything needed to seed a quest repository.

    ``stages`` are ordered; each patch is authored against the tree left by
    the stages before it, starting from the ``initial`` files.
    """

    initial: dict[Path, str] = field(default_factory=dict)
    stages: list[QuestStage] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)

    def patches_for(self, branch: str) -> list[str]:
        """Return the patch stack that produces ``branch``, oldest first.

        Raises:
            KeyError: If no stage produces ``branch``.
        """
        patches = []
        for stage in self.stages:
            patches.append(stage.patch)
            if stage.branch == branch:
                return patches
        raise KeyError(f"No stage produces branch: {branch}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "initial": {str(path): contents for path, contents in self.initial.items()},
            "stages": [{"branch": s.branch, "patch": s.patch} for s in self.stages],
            "config": self.config,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuestPackage:
        return cls(
            initial={Path(path): contents for path, contents in data.get("initial", {}).items()},
            stages=[QuestStage(**stage) for stage in data.get("stages", [])],
            config=data.get("config", {}),
        )

    def save(self, path: Path) -> None:
        """Write the package as gzip-compressed JSON."""
        with gzip.open(path, "wt", encoding="utf-8") as f:
            json.dump(self.to_dict(), f)

    @classmethod
    def load(cls, path: Path) -> QuestPackage:
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
