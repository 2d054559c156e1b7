"""Git plumbing for committing generated documentation."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

DEFAULT_SUBJECT = "docs: add missing documentation"
COMMIT_FOOTER = "This commit was created by docpatch."


class PublishError(RuntimeError):
    """Raised when git is unavailable or a branch/commit operation fails."""


def build_commit_message(
    identifiers: Mapping[str, Sequence[str]],
    *,
    subject: str | None = None,
) -> tuple[str, str, str]:
    """Return the (subject, body, footer) of the documentation commit."""
    lines = ["Updated docs:"]
    for path in sorted(identifiers):
        for identifier in sorted(identifiers[path]):
            lines.append(f"  - {path}@{identifier}")
    return subject or DEFAULT_SUBJECT, "\n".join(lines), COMMIT_FOOTER


class Publisher:
    """Handles branch checkout and commits through the git command line."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def checkout_branch(self, repo_path: str | Path, branch: str) -> bool:
        """Check out `branch`, creating it from HEAD when it does not exist.

        Returns True when the branch was created.
        """
        repo = self._require_repo(repo_path)
        exists = self._branch_exists(repo, branch)
        args = ["git", "checkout", branch] if exists else ["git", "checkout", "-b", branch]
        self._run(args, cwd=repo, operation=f"checkout branch {branch}")
        return not exists

    def commit(
        self,
        repo_path: str | Path,
        files: Sequence[Path | str],
        *,
        message: Sequence[str],
    ) -> bool:
        """Stage the provided files and create a commit if changes exist."""
        repo = self._require_repo(repo_path)
        relative_files = [self._to_relative(repo, Path(file)) for file in files]
        if not relative_files:
            return False

        self._run(["git", "add", "--", *relative_files], cwd=repo, operation="stage files")
        staged = self._run(
            ["git", "diff", "--cached", "--name-only", "--", *relative_files],
            cwd=repo,
            capture_output=True,
            operation="inspect staged files",
        )
        if not staged.strip():
            return False

        env = os.environ.copy()
        env.setdefault("GIT_AUTHOR_NAME", "docpatch")
        env.setdefault("GIT_AUTHOR_EMAIL", "docpatch@example.com")
        env.setdefault("GIT_COMMITTER_NAME", env["GIT_AUTHOR_NAME"])
        env.setdefault("GIT_COMMITTER_EMAIL", env["GIT_AUTHOR_EMAIL"])

        args = ["git", "commit"]
        for part in message:
            if part:
                args.extend(["-m", part])
        args.extend(["--", *relative_files])
        self._run(args, cwd=repo, env=env, operation="commit")
        return True

    # ------------------------------------------------------------------
    # Helpers

    def _require_repo(self, repo_path: str | Path) -> Path:
        repo = Path(repo_path)
        output = self._run(
            ["git", "rev-parse", "--is-inside-work-tree"],
            cwd=repo,
            capture_output=True,
            operation="locate work tree",
        )
        if output.strip() != "true":
            raise PublishError(f"{repo} is not inside a git work tree")
        return repo

    def _branch_exists(self, repo: Path, branch: str) -> bool:
        try:
            self._runner(
                ["git", "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"],
                cwd=repo,
                env=None,
                capture_output=True,
            )
        except subprocess.CalledProcessError:
            return False
        except FileNotFoundError as exc:
            raise PublishError("git executable not found") from exc
        return True

    @staticmethod
    def _to_relative(repo: Path, file_path: Path) -> str:
        try:
            return file_path.relative_to(repo).as_posix()
        except ValueError:
            return file_path.as_posix()

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
        operation: str,
    ) -> str:
        args = list(args)
        try:
            return self._runner(args, cwd=cwd, env=env, capture_output=capture_output)
        except FileNotFoundError as exc:
            raise PublishError("git executable not found") from exc
        except subprocess.CalledProcessError as exc:
            output = exc.stderr or exc.stdout
            detail = output.strip() if isinstance(output, str) else ""
            suffix = f": {detail}" if detail else ""
            raise PublishError(f"git failed to {operation} (exit {exc.returncode}){suffix}") from exc

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            capture_output=capture_output,
        )
        if capture_output:
            return completed.stdout
        return ""


__all__ = ["COMMIT_FOOTER", "DEFAULT_SUBJECT", "PublishError", "Publisher", "build_commit_message"]
