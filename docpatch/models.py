"""Core data models shared across docpatch components."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

ResultKey = Tuple[str, str]


@dataclass(frozen=True)
class Finding:
    """One undocumented symbol located in a source file."""

    path: str
    identifier: str
    kind: str
    anchor: int
    indent: str = ""
    # Start offset of the existing doc comment; only set when overriding docs.
    doc_start: Optional[int] = None

    @property
    def key(self) -> ResultKey:
        return (self.path, self.identifier)

    def __str__(self) -> str:
        return f"{self.path}@{self.identifier}"


Findings = Dict[str, List[Finding]]


def iter_findings(findings: Mapping[str, List[Finding]]) -> Iterator[Finding]:
    """Yield findings in deterministic order: path first, then identifier."""
    for path in sorted(findings):
        yield from findings[path]


@dataclass(frozen=True)
class GenerationTask:
    """A single scheduled generation request for one Finding."""

    finding: Finding
    source: bytes

    @property
    def path(self) -> str:
        return self.finding.path

    @property
    def identifier(self) -> str:
        return self.finding.identifier

    @property
    def key(self) -> ResultKey:
        return self.finding.key


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation task: documentation text or a failure reason."""

    path: str
    identifier: str
    text: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.text is not None

    @property
    def key(self) -> ResultKey:
        return (self.path, self.identifier)


@dataclass
class GenerationReport:
    """Collected results of a scheduler run."""

    tasks: List[GenerationTask]
    results: Dict[ResultKey, GenerationResult] = field(default_factory=dict)
    cancelled: bool = False

    def successes(self) -> List[GenerationResult]:
        return [self.results[key] for key in self._ordered_keys() if self.results[key].ok]

    def failures(self) -> List[GenerationResult]:
        return [self.results[key] for key in self._ordered_keys() if not self.results[key].ok]

    def skipped(self) -> List[GenerationTask]:
        """Tasks that were never dispatched because the run was cancelled."""
        return [task for task in self.tasks if task.key not in self.results]

    def text_for(self, finding: Finding) -> Optional[str]:
        result = self.results.get(finding.key)
        if result is None or not result.ok:
            return None
        return result.text

    def _ordered_keys(self) -> List[ResultKey]:
        return sorted(self.results)


@dataclass
class Patch:
    """New full contents for every file that received documentation."""

    files: Dict[str, bytes] = field(default_factory=dict)
    originals: Dict[str, bytes] = field(default_factory=dict)
    identifiers: Dict[str, List[str]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.files)

    def paths(self) -> List[str]:
        return sorted(self.files)
