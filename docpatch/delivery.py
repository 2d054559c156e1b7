"""Result delivery: preview, write, or commit an assembled Patch."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .git.publisher import PublishError, Publisher, build_commit_message
from .logging import Event, Observer, null_observer
from .models import Patch
from .tree import FileTree


class DeliveryError(RuntimeError):
    """Raised when writing a patched file fails; earlier writes are kept."""

    def __init__(self, path: str, written: List[str], cause: Exception) -> None:
        super().__init__(f"failed to write {path}: {cause}")
        self.path = path
        self.written = list(written)


@dataclass
class CommitOutcome:
    """What a commit-mode delivery did."""

    branch: str
    written: List[str] = field(default_factory=list)
    committed: bool = False
    created_branch: bool = False


def render_diff(path: str, original: bytes, updated: bytes) -> str:
    diff = difflib.unified_diff(
        original.decode("utf-8", errors="replace").splitlines(keepends=True),
        updated.decode("utf-8", errors="replace").splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    return "".join(diff)


class Delivery:
    """Turns a Patch into diffs, written files, or a commit on a branch."""

    def __init__(
        self,
        tree: FileTree,
        *,
        publisher: Publisher | None = None,
        repo_path: Path | str | None = None,
        observer: Observer | None = None,
    ) -> None:
        self.tree = tree
        self.publisher = publisher or Publisher()
        self.repo_path = Path(repo_path) if repo_path is not None else getattr(tree, "root", None)
        self._observer = observer or null_observer

    def dry_run(self, patch: Patch) -> Dict[str, str]:
        """Return unified diffs keyed by path without touching the tree."""
        return {path: render_diff(path, patch.originals.get(path, b""), patch.files[path]) for path in patch.paths()}

    def apply(self, patch: Patch) -> List[str]:
        """Write every patched file, in path order, and return the written paths."""
        written: List[str] = []
        for path in patch.paths():
            try:
                self.tree.write(path, patch.files[path])
            except OSError as exc:
                raise DeliveryError(path, written, exc) from exc
            written.append(path)
            self._observer(Event("delivery.file_written", {"path": path}))
        return written

    def commit(self, patch: Patch, branch: str, *, subject: Optional[str] = None) -> CommitOutcome:
        """Check out `branch`, write the patch, and commit the touched files."""
        outcome = CommitOutcome(branch=branch)
        if not patch:
            return outcome
        if self.repo_path is None:
            raise PublishError("commit delivery requires a repository on disk")

        outcome.created_branch = self.publisher.checkout_branch(self.repo_path, branch)
        outcome.written = self.apply(patch)
        message = build_commit_message(patch.identifiers, subject=subject)
        outcome.committed = self.publisher.commit(
            self.repo_path,
            [self.repo_path / path for path in outcome.written],
            message=message,
        )
        if outcome.committed:
            self._observer(Event("delivery.committed", {"branch": branch, "files": len(outcome.written)}))
        return outcome


__all__ = ["CommitOutcome", "Delivery", "DeliveryError", "render_diff"]
