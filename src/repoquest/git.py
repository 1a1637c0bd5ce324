"""Git repository handle and the branch derivation engine."""

from __future__ import annotations

import logging
import os
import shlex
import stat
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from git import Repo

from repoquest.command import CommandResult, run_command, user_env
from repoquest.core import MergeType

if TYPE_CHECKING:
    from repoquest.package import QuestPackage
    from repoquest.template import QuestTemplate

logger = logging.getLogger(__name__)

ORIGIN = "origin"
UPSTREAM = "upstream"
MAIN_BRANCH = "main"
META_BRANCH = "meta"
INITIAL_TAG = "initial"

INITIAL_COMMIT_MESSAGE = "Initial commit"
STARTER_COMMIT_MESSAGE = "Starter code"
META_COMMIT_MESSAGE = "Add meta"
SOLUTION_COMMIT_MESSAGE = "Override with reference solution"

HOOKS_DIR = ".githooks"
META_CONFIG_FILE = "rqst.yml"
META_PACKAGE_FILE = "package.json.gz"

# git apply exits 1 when hunks are rejected and 128 on fatal errors
APPLY_REJECTED = 1


class VcsError(RuntimeError):
    """A git command failed."""

    def __init__(self, command: str, stderr: str, context: str | None = None):
        message = f"git failed: {command}\nstderr:\n{stderr}"
        if context:
            message = f"{context}\n{message}"
        super().__init__(message)
        self.command = command
        self.stderr = stderr
        self.context = context

    @classmethod
    def wrap(cls, error: VcsError, context: str, **kwargs) -> VcsError:
        """Re-raise ``error`` as ``cls`` with extra context."""
        return cls(error.command, error.stderr, context=context, **kwargs)


class FallbackError(VcsError):
    """A step of a conflict fallback failed; there is nothing left to try."""


class HousekeepingError(VcsError):
    """The strategy committed locally but a later step failed.

    Local state may disagree with the remote and needs manual reconciliation.
    """

    def __init__(
        self,
        command: str,
        stderr: str,
        context: str | None = None,
        merge_type: MergeType | None = None,
        head: str | None = None,
    ):
        super().__init__(command, stderr, context=context)
        self.merge_type = merge_type
        self.head = head


class PublishError(HousekeepingError):
    """Pushing a derived branch failed."""


class TrunkCheckoutError(HousekeepingError):
    """Returning to the main branch failed after a derivation."""


class GitRepo:
    """A working clone bound to the operations the derivation engine needs.

    The handle assumes exclusive use of its working tree for the length of
    each call. Every public operation starts and ends with a clean tree.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.repo = Repo(self.path)
        self.repo.git.update_environment(**user_env())

    @classmethod
    def clone(cls, path: Path | str, url: str) -> GitRepo:
        """Clone ``url`` into ``path``."""
        path = Path(path)
        logger.debug("git: clone %s %s", url, path)
        Repo.clone_from(url, path, env=user_env())
        return cls(path)

    def _run_git(
        self, *args: str, strip: bool = True, binary: bool = False
    ) -> tuple[int, str | bytes, str]:
        logger.debug("git: %s", shlex.join(args))
        return self.repo.git.execute(
            ["git", *args],
            with_extended_output=True,
            with_exceptions=False,
            stdout_as_string=not binary,
            strip_newline_in_stdout=strip,
        )

    def _git(self, *args: str, context: str | None = None, strip: bool = True) -> str:
        status, stdout, stderr = self._run_git(*args, strip=strip)
        if status != 0:
            raise VcsError(shlex.join(["git", *args]), stderr, context=context)
        return stdout

    def setup_upstream(self, url: str) -> None:
        """Track ``url`` as the upstream mirror and fetch it."""
        self._git("remote", "add", UPSTREAM, url)
        self.fetch(UPSTREAM)

    def fetch(self, remote: str) -> None:
        self._git("fetch", remote)

    def upstream(self) -> str | None:
        """Return the upstream remote name if it is configured."""
        status, _, _ = self._run_git("remote", "get-url", UPSTREAM)
        return UPSTREAM if status == 0 else None

    def pull(self) -> None:
        self._git("pull")

    def checkout(self, branch: str) -> None:
        self._git("checkout", branch)

    def checkout_new_branch(self, name: str) -> None:
        self._git("checkout", "-b", name)

    def checkout_main(self) -> None:
        self.checkout(MAIN_BRANCH)

    def stage_all(self) -> None:
        self._git("add", "--all")

    def has_staged_changes(self) -> bool:
        status, _, stderr = self._run_git("diff", "--cached", "--quiet")
        if status not in (0, 1):
            raise VcsError("git diff --cached --quiet", stderr)
        return status == 1

    def commit(self, message: str, *, allow_empty: bool = False) -> None:
        """Commit the index, skipping when there is nothing staged.

        With ``allow_empty`` an empty index still records a commit.
        """
        if allow_empty:
            self._git("commit", "--allow-empty", "-m", message)
            return
        if not self.has_staged_changes():
            logger.info("Nothing to commit for %r, leaving HEAD as is", message)
            return
        self._git("commit", "-m", message)

    def tag(self, name: str) -> None:
        self._git("tag", name)

    def push(self, branch: str, *, set_upstream: bool = False, force: bool = False) -> None:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        if force:
            args.append("--force")
        self._git(*args, ORIGIN, branch)

    def head_commit(self) -> str:
        return self._git("rev-parse", "HEAD", context="Failed to get head commit").rstrip()

    def current_branch(self) -> str:
        return self._git("symbolic-ref", "--short", "HEAD").rstrip()

    def reset(self, branch: str) -> None:
        """Hard reset the current branch to ``branch`` and force-push it."""
        self._git("reset", "--hard", branch, context="Failed to reset")
        self._git("push", "--force", context="Failed to push reset branch")

    def diff(self, base: str, head: str) -> str:
        return self._git("diff", f"{base}..{head}", strip=False)

    def contains_file(self, ref: str, path: str) -> bool:
        status, _, _ = self._run_git("cat-file", "-e", f"{ref}:{path}")
        return status == 0

    def read_file(self, ref: str, path: str) -> str:
        return self._git("cat-file", "-p", f"{ref}:{path}", strip=False)

    def show_bin(self, ref: str, path: str) -> bytes:
        status, stdout, stderr = self._run_git(
            "cat-file", "-p", f"{ref}:{path}", strip=False, binary=True
        )
        if status != 0:
            raise VcsError(f"git cat-file -p {ref}:{path}", stderr)
        return stdout

    def list_files(self, ref: str) -> list[str]:
        out = self._git("ls-tree", "-r", ref, "--name-only")
        return [line for line in out.splitlines() if line]

    def read_initial_files(self) -> dict[Path, str]:
        """Read every file on the main branch."""
        return {
            Path(path): self.read_file(MAIN_BRANCH, path)
            for path in self.list_files(MAIN_BRANCH)
        }

    def is_behind(self, local: str, remote: str) -> bool:
        """True if ``remote`` has commits that ``local`` lacks."""
        out = self._git("rev-list", "--count", f"{local}..{remote}")
        try:
            return int(out.strip()) > 0
        except ValueError:
            raise VcsError(
                f"git rev-list --count {local}..{remote}",
                "",
                context=f"rev-list returned non-numeric output:\n{out}",
            ) from None

    def is_behind_origin(self) -> bool:
        return self.is_behind(MAIN_BRANCH, f"{ORIGIN}/{MAIN_BRANCH}")

    def _apply(self, patch: str) -> CommandResult:
        logger.debug("Applying patch:\n%s", patch)
        result = run_command("git apply -", self.path, stdin=patch.encode("utf-8"))
        if not result.ok and result.returncode != APPLY_REJECTED:
            raise VcsError("git apply -", result.stderr_text)
        return result

    def apply(self, patch: str) -> bool:
        """Apply a diff to the working tree.

        Returns:
            True if it applied, False if git rejected its hunks.
        """
        result = self._apply(patch)
        if not result.ok:
            logger.warning("Failed to apply patch: %s", result.stderr_text.strip())
        return result.ok

    def apply_patch(self, patches: Sequence[str]) -> MergeType:
        """Bring the current branch to the state of the last patch.

        Tries the last patch alone first. If git rejects it, the branch is
        hard reset to the initial tag and the whole stack is replayed in
        order. Either way the result is committed as starter code.

        Raises:
            ValueError: If ``patches`` is empty.
            FallbackError: If a patch fails to apply during the replay.
        """
        if not patches:
            raise ValueError("apply_patch needs at least one patch")

        if self.apply(patches[-1]):
            merge_type = MergeType.SUCCESS
        else:
            logger.warning(
                "Last patch does not apply, replaying %d patches from %s",
                len(patches),
                INITIAL_TAG,
            )
            try:
                self._git("reset", "--hard", INITIAL_TAG)
            except VcsError as e:
                raise FallbackError.wrap(e, f"Failed to reset to {INITIAL_TAG}") from e
            for i, patch in enumerate(patches, start=1):
                result = self._apply(patch)
                if not result.ok:
                    raise FallbackError(
                        "git apply -",
                        result.stderr_text,
                        context=f"Patch {i} of {len(patches)} failed to apply after reset",
                    )
            merge_type = MergeType.STARTER_RESET

        self.stage_all()
        self.commit(STARTER_COMMIT_MESSAGE)
        return merge_type

    def _cherry_pick_in_progress(self) -> bool:
        git_dir = Path(self.repo.git_dir)
        return (git_dir / "CHERRY_PICK_HEAD").exists() or (git_dir / "sequencer").is_dir()

    def cherry_pick(self, base_branch: str, target_branch: str) -> MergeType:
        """Replay ``upstream/base..upstream/target`` onto the current branch.

        On conflict the replay is aborted and the branch takes the upstream
        target's tree wholesale, committed on top of main even when that
        tree matches main's.
        """
        upstream_target = f"{UPSTREAM}/{target_branch}"
        try:
            self._git("cherry-pick", f"{UPSTREAM}/{base_branch}..{upstream_target}")
            return MergeType.SUCCESS
        except VcsError as e:
            if not self._cherry_pick_in_progress():
                raise
            logger.warning(
                "Merge conflicts when cherry-picking, resorting to hard reset: %s",
                e.stderr.strip(),
            )

        steps = [
            (("cherry-pick", "--abort"), "Failed to abort cherry-pick"),
            (("reset", "--hard", upstream_target), f"Failed to reset to {upstream_target}"),
            (("reset", "--soft", MAIN_BRANCH), "Failed to soft reset to main"),
        ]
        for args, context in steps:
            try:
                self._git(*args)
            except VcsError as e:
                raise FallbackError.wrap(e, context) from e
        try:
            self.commit(SOLUTION_COMMIT_MESSAGE, allow_empty=True)
        except VcsError as e:
            raise FallbackError.wrap(e, "Failed to commit reference solution") from e

        return MergeType.SOLUTION_RESET

    def derive_branch(
        self,
        template: QuestTemplate,
        base_branch: str,
        target_branch: str,
    ) -> tuple[str, MergeType]:
        """Create ``target_branch`` from the current branch and publish it.

        The template decides how the branch is reconciled. A failure before
        publishing leaves the new branch checked out for inspection.

        Returns:
            Tuple of (head commit of the new branch, merge type).

        Raises:
            PublishError: The branch was committed locally but not pushed.
            TrunkCheckoutError: The branch was published but main could not
                be checked out again.
        """
        self.checkout_new_branch(target_branch)

        merge_type = template.apply_patch(self, base_branch, target_branch)

        try:
            self.push(target_branch, set_upstream=True)
        except VcsError as e:
            raise PublishError.wrap(
                e, f"Failed to publish {target_branch}", merge_type=merge_type
            ) from e

        try:
            head = self.head_commit()
        except VcsError as e:
            raise HousekeepingError.wrap(
                e, f"Published {target_branch} but could not read HEAD", merge_type=merge_type
            ) from e

        try:
            self.checkout_main()
        except VcsError as e:
            raise TrunkCheckoutError.wrap(
                e,
                f"Derived {target_branch} at {head} but could not return to {MAIN_BRANCH}",
                merge_type=merge_type,
                head=head,
            ) from e

        logger.info("Derived %s at %s (%s)", target_branch, head[:8], merge_type.value)
        return head, merge_type

    def write_initial_files(self, package: QuestPackage) -> None:
        """Seed an empty clone with the package's starter files and meta branch."""
        for rel_path, contents in package.initial.items():
            abs_path = self.path / rel_path
            abs_path.parent.mkdir(parents=True, exist_ok=True)
            abs_path.write_text(contents, encoding="utf-8")

        # Packages do not carry file modes, so hooks would lose their exec bit
        hooks_dir = self.path / HOOKS_DIR
        if os.name == "posix" and hooks_dir.is_dir():
            for hook in hooks_dir.iterdir():
                mode = hook.stat().st_mode
                hook.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

        self.stage_all()
        self.commit(INITIAL_COMMIT_MESSAGE)
        self.tag(INITIAL_TAG)
        self.push(MAIN_BRANCH, set_upstream=True)

        self.checkout_new_branch(META_BRANCH)
        (self.path / META_CONFIG_FILE).write_text(
            yaml.safe_dump(package.config, default_flow_style=False, sort_keys=False)
        )
        package.save(self.path / META_PACKAGE_FILE)
        self.stage_all()
        self.commit(META_COMMIT_MESSAGE)
        self.push(META_BRANCH, set_upstream=True)
        self.checkout_main()

    def install_hooks(self) -> None:
        """Run the post-checkout hook once and point git at the hooks directory."""
        hooks_dir = self.path / HOOKS_DIR
        if not hooks_dir.is_dir():
            return

        post_checkout = hooks_dir / "post-checkout"
        if post_checkout.exists():
            run_command(shlex.quote(str(post_checkout)), self.path, check=True)

        self._git("config", "--local", "core.hooksPath", HOOKS_DIR)
