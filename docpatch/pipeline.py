"""Run orchestration: locate, generate, assemble, deliver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .assembler import Assembler
from .config import DocPatchConfig
from .delivery import Delivery
from .finder import Finder
from .git.publisher import Publisher
from .llm.client import ChatClient
from .llm.service import DocWriter
from .logging import LoggingObserver, Observer, get_logger
from .models import Findings, GenerationReport, GenerationResult, Patch
from .scheduler import CancelToken, GenerationCapability, Scheduler
from .tree import DirectoryTree, FileTree


class Mode(str, Enum):
    """How a run delivers its patch."""

    DRY_RUN = "dry_run"
    APPLY = "apply"
    COMMIT = "commit"


@dataclass
class RunReport:
    """Everything a single run produced."""

    mode: Mode
    findings: Findings
    generation: GenerationReport
    patch: Patch
    diffs: Dict[str, str] = field(default_factory=dict)
    written: List[str] = field(default_factory=list)
    branch: Optional[str] = None
    committed: bool = False

    @property
    def cancelled(self) -> bool:
        return self.generation.cancelled

    @property
    def failures(self) -> List[GenerationResult]:
        return self.generation.failures()

    @property
    def documented(self) -> int:
        return sum(len(identifiers) for identifiers in self.patch.identifiers.values())


class Pipeline:
    """Coordinates one batch run over a snapshot of the source tree."""

    def __init__(
        self,
        config: DocPatchConfig,
        *,
        tree: FileTree | None = None,
        capability: GenerationCapability | None = None,
        publisher: Publisher | None = None,
        observer: Observer | None = None,
    ) -> None:
        self.config = config
        self.tree = tree or DirectoryTree(config.root)
        self.publisher = publisher
        self.observer = observer or LoggingObserver(get_logger("events"))
        self.logger = get_logger("pipeline")
        self._capability = capability

    def run(
        self,
        *,
        dry_run: bool = False,
        files: Iterable[str] | None = None,
        token: CancelToken | None = None,
    ) -> RunReport:
        self.config.validate(dry_run=dry_run)
        branch = self.config.publish.branch
        mode = Mode.DRY_RUN if dry_run else Mode.COMMIT if branch else Mode.APPLY
        self.logger.info("Starting %s run for %s", mode.value, self.config.root)

        finder = Finder(self.tree, self.config.finder, self.observer)
        file_list = list(files) if files is not None else None
        findings = finder.find_files(file_list) if file_list else finder.find()
        sources = finder.sources

        scheduler = Scheduler(self.capability, self.config.generation, self.observer)
        generation = scheduler.run(findings, sources, token=token)

        patch = Assembler(self.observer).assemble(findings, sources, generation)
        report = RunReport(mode=mode, findings=findings, generation=generation, patch=patch)

        delivery = Delivery(
            self.tree,
            publisher=self.publisher,
            repo_path=self.config.root,
            observer=self.observer,
        )
        if mode is Mode.DRY_RUN:
            report.diffs = delivery.dry_run(patch)
        elif mode is Mode.APPLY:
            report.written = delivery.apply(patch)
        else:
            outcome = delivery.commit(patch, branch, subject=self.config.publish.message)
            report.branch = outcome.branch
            report.written = outcome.written
            report.committed = outcome.committed

        self.logger.info(
            "Documented %d symbols in %d files (%d failed, %d skipped)",
            report.documented,
            len(patch.files),
            len(generation.failures()),
            len(generation.skipped()),
        )
        return report

    @property
    def capability(self) -> GenerationCapability:
        if self._capability is None:
            llm = self.config.llm
            client = ChatClient(
                llm.model,
                base_url=llm.base_url,
                temperature=llm.temperature if llm.temperature is not None else 0.1,
                max_tokens=llm.max_tokens or ChatClient.DEFAULT_MAX_TOKENS,
                api_key=llm.api_key,
                request_timeout=llm.request_timeout or 60.0,
            )
            self._capability = DocWriter(
                client,
                max_source_tokens=llm.max_source_tokens,
                footer=self.config.generation.footer,
            )
        return self._capability


__all__ = ["Mode", "Pipeline", "RunReport"]
