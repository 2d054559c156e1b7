"""Two-level bounded scheduler for documentation generation requests."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, as_completed, wait
from typing import Callable, Dict, List, Mapping, Protocol, Sequence

from .config import ConfigError, GenerationConfig
from .logging import Event, Observer, null_observer
from .models import Findings, GenerationReport, GenerationResult, GenerationTask, ResultKey, iter_findings

_POLL_INTERVAL = 0.1


class GenerationCapability(Protocol):
    """Produces documentation text for one symbol."""

    def generate_doc(self, task: GenerationTask) -> str:
        """Return documentation text or raise a generation error."""


class SchedulerError(RuntimeError):
    """Raised when a run escalates task failures to a run-level failure."""

    def __init__(self, message: str, report: GenerationReport) -> None:
        super().__init__(message)
        self.report = report


class CancelToken:
    """Cancellation signal shared between the caller and the workers.

    A timeout turns the token into a deadline: once it passes, the token
    reports itself cancelled.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None
        self.timed_out = False

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self.poll()

    def poll(self) -> bool:
        """Check the deadline and return whether the token is cancelled."""
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self.timed_out = True
            self._event.set()
            return True
        return False

    @property
    def raised(self) -> bool:
        """Whether cancellation was actually observed or requested."""
        return self._event.is_set()


class _ResultCollector:
    """Synchronized sink for results completed on worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: Dict[ResultKey, GenerationResult] = {}

    def add(self, result: GenerationResult) -> None:
        with self._lock:
            if result.key in self._results:
                raise RuntimeError(f"duplicate result for {result.path}@{result.identifier}")
            self._results[result.key] = result

    def snapshot(self) -> Dict[ResultKey, GenerationResult]:
        with self._lock:
            return dict(self._results)


class Scheduler:
    """Dispatches files to an outer pool and their symbols to per-file pools."""

    def __init__(
        self,
        capability: GenerationCapability,
        config: GenerationConfig | None = None,
        observer: Observer | None = None,
    ) -> None:
        self.capability = capability
        self.config = config or GenerationConfig()
        self._observer = observer or null_observer

    def plan(self, findings: Findings, sources: Mapping[str, bytes]) -> List[GenerationTask]:
        """Flatten findings into a deterministic task list, honouring the item limit."""
        tasks = [GenerationTask(finding=finding, source=sources[finding.path]) for finding in iter_findings(findings)]
        limit = self.config.item_limit
        if limit > 0 and len(tasks) > limit:
            self._emit("scheduler.truncated", available=len(tasks), limit=limit)
            tasks = tasks[:limit]
        return tasks

    def run(
        self,
        findings: Findings,
        sources: Mapping[str, bytes],
        token: CancelToken | None = None,
    ) -> GenerationReport:
        """Generate documentation for every planned task and collect the results."""
        self._check_budgets()
        tasks = self.plan(findings, sources)
        token = token or CancelToken(self.config.timeout)
        collector = _ResultCollector()

        groups = _group_by_file(tasks)
        if groups:
            width = min(self.config.per_tree_concurrency, len(groups))
            with ThreadPoolExecutor(max_workers=width, thread_name_prefix="docpatch-file") as pool:
                futures = [
                    pool.submit(self._run_file, path, file_tasks, collector, token)
                    for path, file_tasks in groups.items()
                ]
                self._wait(futures, token)
            for future in futures:
                # Surface unexpected worker errors; task failures never reach here.
                future.result()

        report = GenerationReport(tasks=tasks, results=collector.snapshot(), cancelled=token.raised)
        if report.cancelled:
            self._emit(
                "scheduler.cancelled",
                reason="timeout" if token.timed_out else "cancelled",
                completed=len(report.results),
                skipped=len(report.skipped()),
            )
        self._emit(
            "scheduler.done",
            succeeded=len(report.successes()),
            failed=len(report.failures()),
            skipped=len(report.skipped()),
        )
        self._escalate(report)
        return report

    # ------------------------------------------------------------------
    # Workers

    def _run_file(
        self,
        path: str,
        tasks: Sequence[GenerationTask],
        collector: _ResultCollector,
        token: CancelToken,
    ) -> None:
        if token.cancelled:
            return
        self._emit("scheduler.file_started", path=path, tasks=len(tasks))
        width = min(self.config.per_file_concurrency, len(tasks))
        with ThreadPoolExecutor(max_workers=width, thread_name_prefix="docpatch-task") as pool:
            futures = [pool.submit(self._run_task, task, collector, token) for task in tasks]
            for future in as_completed(futures):
                future.result()

    def _run_task(self, task: GenerationTask, collector: _ResultCollector, token: CancelToken) -> None:
        if token.cancelled:
            return
        self._emit("scheduler.task_started", path=task.path, identifier=task.identifier)
        try:
            text = self.capability.generate_doc(task)
        except Exception as exc:  # recorded against the task, siblings keep running
            result = GenerationResult(
                path=task.path,
                identifier=task.identifier,
                error=str(exc) or exc.__class__.__name__,
                reason=getattr(exc, "reason", None) or "error",
            )
        else:
            text = (text or "").strip()
            if text:
                result = GenerationResult(path=task.path, identifier=task.identifier, text=text)
            else:
                result = GenerationResult(
                    path=task.path,
                    identifier=task.identifier,
                    error="empty documentation text",
                    reason="invalid_response",
                )

        collector.add(result)
        if result.ok:
            self._emit("scheduler.task_done", path=task.path, identifier=task.identifier)
            return
        self._emit(
            "scheduler.task_failed",
            path=task.path,
            identifier=task.identifier,
            reason=result.reason,
            error=result.error,
        )
        if self.config.fail_fast:
            token.cancel()

    # ------------------------------------------------------------------
    # Helpers

    def _wait(self, futures: List[Future], token: CancelToken) -> None:
        pending = set(futures)
        while pending:
            try:
                done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_EXCEPTION)
            except KeyboardInterrupt:
                # In-flight requests finish; nothing new is dispatched.
                token.cancel()
                continue
            # Lets a deadline pass while workers are busy.
            token.poll()

    def _check_budgets(self) -> None:
        if self.config.per_file_concurrency < 1 or self.config.per_tree_concurrency < 1:
            raise ConfigError("concurrency budgets must be at least 1")
        if self.config.item_limit < 0:
            raise ConfigError("item_limit must not be negative")

    def _escalate(self, report: GenerationReport) -> None:
        failures = report.failures()
        if self.config.fail_fast and failures:
            first = failures[0]
            raise SchedulerError(
                f"generation failed for {first.path}@{first.identifier}: {first.error}",
                report,
            )
        if self.config.fail_on_empty and report.results and not report.successes():
            raise SchedulerError(
                f"no documentation generated ({len(failures)} failures)",
                report,
            )

    def _emit(self, name: str, **fields: object) -> None:
        self._observer(Event(name, fields))


def _group_by_file(tasks: Sequence[GenerationTask]) -> "OrderedDict[str, List[GenerationTask]]":
    groups: "OrderedDict[str, List[GenerationTask]]" = OrderedDict()
    for task in tasks:
        groups.setdefault(task.path, []).append(task)
    return groups


__all__ = ["CancelToken", "GenerationCapability", "Scheduler", "SchedulerError"]
