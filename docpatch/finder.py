"""Symbol locator: walks a file tree and reports undocumented Go declarations."""

from __future__ import annotations

import re
from fnmatch import fnmatch
from typing import Dict, Iterable, List, Optional, Pattern, Set

from . import golang
from .config import ConfigError, FinderConfig
from .logging import Event, Observer, null_observer
from .models import Finding, Findings
from .tree import FileTree, TreeEntry

GO_SUFFIX = ".go"
TEST_SUFFIX = "_test.go"


class LocatorError(RuntimeError):
    """Raised when a directory or file cannot be listed, read, or parsed."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class Finder:
    """Depth-first scan of a file tree for declarations lacking doc comments."""

    def __init__(
        self,
        tree: FileTree,
        config: FinderConfig | None = None,
        observer: Observer | None = None,
    ) -> None:
        self.tree = tree
        self.config = config or FinderConfig()
        self._observer = observer or null_observer
        self._exclude_dirs: Set[str] = set(self.config.exclude_dirs)
        self._match: List[Pattern[str]] = _compile(self.config.match)
        # Contents of every file that produced findings, as read during the scan.
        self.sources: Dict[str, bytes] = {}

    def find(self, directory: str = ".") -> Findings:
        """Return findings for every eligible file below `directory`."""
        findings: Findings = {}
        self._walk(directory, findings)
        self._emit("finder.done", files=len(findings), findings=_count(findings))
        return findings

    def find_files(self, paths: Iterable[str]) -> Findings:
        """Return findings for an explicit list of files, bypassing traversal rules."""
        findings: Findings = {}
        for path in sorted(set(paths)):
            if not path.endswith(GO_SUFFIX):
                self._emit("finder.file_skipped", path=path, reason="not a Go file")
                continue
            found = self.scan_file(path)
            if found:
                findings[path] = found
        self._emit("finder.done", files=len(findings), findings=_count(findings))
        return findings

    def scan_file(self, path: str) -> List[Finding]:
        """Parse one file and return its findings sorted by identifier."""
        try:
            source = self.tree.read(path)
        except OSError as exc:
            raise LocatorError(path, f"cannot read file: {exc}") from exc
        try:
            declarations = golang.declarations(
                source, interface_methods=self.config.interface_methods
            )
        except golang.ParseError as exc:
            raise LocatorError(path, f"cannot parse file: {exc}") from exc

        found: List[Finding] = []
        seen: Set[str] = set()
        for declaration in declarations:
            if declaration.identifier in seen:
                continue
            seen.add(declaration.identifier)
            if declaration.documented and not self.config.override:
                continue
            if self.config.exported_only and not declaration.exported:
                continue
            if self._match and not any(pattern.search(declaration.identifier) for pattern in self._match):
                continue
            found.append(
                Finding(
                    path=path,
                    identifier=declaration.identifier,
                    kind=declaration.kind,
                    anchor=declaration.anchor,
                    indent=declaration.indent,
                    doc_start=declaration.doc_start if self.config.override else None,
                )
            )

        found.sort(key=lambda finding: finding.identifier)
        if found:
            self.sources[path] = source
        self._emit("finder.file_scanned", path=path, findings=len(found))
        return found

    # ------------------------------------------------------------------
    # Traversal

    def _walk(self, directory: str, findings: Findings) -> None:
        try:
            entries = self.tree.list(directory)
        except OSError as exc:
            raise LocatorError(directory, f"cannot list directory: {exc}") from exc

        for entry in entries:
            if entry.is_dir:
                reason = self._directory_skip_reason(entry)
                if reason:
                    self._emit("finder.dir_skipped", path=entry.path, reason=reason)
                    continue
                self._walk(entry.path, findings)
                continue

            reason = self._file_skip_reason(entry)
            if reason:
                self._emit("finder.file_skipped", path=entry.path, reason=reason)
                continue
            found = self.scan_file(entry.path)
            if found:
                findings[entry.path] = found

    def _directory_skip_reason(self, entry: TreeEntry) -> Optional[str]:
        if entry.name.startswith("."):
            return "hidden"
        if entry.name in self._exclude_dirs:
            return "excluded directory"
        if any(_pattern_matches(entry.path + "/", pattern) for pattern in self.config.exclude):
            return "excluded by pattern"
        return None

    def _file_skip_reason(self, entry: TreeEntry) -> Optional[str]:
        if not entry.name.endswith(GO_SUFFIX):
            return "not a Go file"
        if entry.name.endswith(TEST_SUFFIX):
            return "test file"
        if self.config.include and not any(
            _pattern_matches(entry.path, pattern) for pattern in self.config.include
        ):
            return "not included"
        if any(_pattern_matches(entry.path, pattern) for pattern in self.config.exclude):
            return "excluded by pattern"
        return None

    def _emit(self, name: str, **fields: object) -> None:
        self._observer(Event(name, fields))


def _compile(patterns: Iterable[str]) -> List[Pattern[str]]:
    compiled: List[Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            raise ConfigError(f"Invalid match pattern {pattern!r}: {exc}") from exc
    return compiled


def _count(findings: Findings) -> int:
    return sum(len(items) for items in findings.values())


def _pattern_matches(path: str, pattern: str) -> bool:
    normalized = path.replace("\\", "/")
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        return normalized.rstrip("/") == prefix or normalized.startswith(prefix + "/")
    if pattern.endswith("/"):
        return normalized.startswith(pattern)
    if pattern.startswith("**/"):
        suffix = pattern[3:]
        return fnmatch(normalized, suffix) or fnmatch(normalized, pattern)
    if "/" in pattern or any(ch in pattern for ch in "*?["):
        return fnmatch(normalized, pattern)
    stripped = normalized.rstrip("/")
    return stripped == pattern or stripped.endswith(f"/{pattern}")


__all__ = ["Finder", "LocatorError"]
