"""File-tree abstractions read by the locator and written by delivery."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Protocol


@dataclass(frozen=True)
class TreeEntry:
    """A directory listing entry."""

    name: str
    path: str
    is_dir: bool


class FileTree(Protocol):
    """Capability over a source tree addressed by POSIX-style relative paths."""

    def list(self, directory: str) -> List[TreeEntry]:
        """Return the entries of `directory` ("." is the root), sorted by name."""

    def read(self, path: str) -> bytes:
        """Return the full contents of the file at `path`."""

    def write(self, path: str, data: bytes) -> None:
        """Replace the contents of the file at `path`."""


def join(directory: str, name: str) -> str:
    if directory in ("", "."):
        return name
    return f"{directory}/{name}"


class DirectoryTree:
    """File tree backed by a directory on disk."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()
        if not self.root.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not self.root.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

    def list(self, directory: str) -> List[TreeEntry]:
        entries: List[TreeEntry] = []
        with os.scandir(self._resolve(directory)) as iterator:
            for entry in iterator:
                entries.append(
                    TreeEntry(
                        name=entry.name,
                        path=join(directory, entry.name),
                        is_dir=entry.is_dir(follow_symlinks=False),
                    )
                )
        entries.sort(key=lambda entry: entry.name)
        return entries

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def write(self, path: str, data: bytes) -> None:
        self._resolve(path).write_bytes(data)

    def _resolve(self, path: str) -> Path:
        if path in ("", "."):
            return self.root
        return self.root / path


class MemoryTree:
    """In-memory file tree, mainly for tests and previews."""

    def __init__(self, files: Mapping[str, bytes | str] | None = None) -> None:
        self.files: Dict[str, bytes] = {}
        for path, content in (files or {}).items():
            self.files[path.strip("/")] = content.encode("utf-8") if isinstance(content, str) else content

    def list(self, directory: str) -> List[TreeEntry]:
        prefix = "" if directory in ("", ".") else directory.rstrip("/") + "/"
        if prefix and not any(path.startswith(prefix) for path in self.files):
            raise FileNotFoundError(f"directory not found: {directory}")
        seen: Dict[str, bool] = {}
        for path in self.files:
            if not path.startswith(prefix):
                continue
            name, _, rest = path[len(prefix):].partition("/")
            seen[name] = seen.get(name, False) or bool(rest)
        return [
            TreeEntry(name=name, path=join(directory, name), is_dir=is_dir)
            for name, is_dir in sorted(seen.items())
        ]

    def read(self, path: str) -> bytes:
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(f"file not found: {path}") from None

    def write(self, path: str, data: bytes) -> None:
        self.files[path] = data

    def text(self, path: str) -> str:
        return self.read(path).decode("utf-8")


__all__ = ["DirectoryTree", "FileTree", "MemoryTree", "TreeEntry", "join"]
