"""CLI entrypoints for docpatch commands."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List

from .config import ConfigError, DocPatchConfig, load_config
from .delivery import DeliveryError
from .finder import LocatorError
from .git.publisher import PublishError
from .logging import configure_logging
from .pipeline import Mode, Pipeline, RunReport
from .scheduler import CancelToken, SchedulerError

_FATAL_ERRORS = (
    ConfigError,
    LocatorError,
    SchedulerError,
    DeliveryError,
    PublishError,
    FileNotFoundError,
    NotADirectoryError,
)


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docpatch",
        description="Fill in missing Go documentation comments using a language model.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate documentation for undocumented declarations.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    generate_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the source tree root (defaults to current directory).",
    )
    generate_parser.add_argument(
        "--config",
        default=None,
        help="Path to a .docpatch.yml file (defaults to the one in the tree root).",
    )
    generate_parser.add_argument(
        "--branch",
        default=os.getenv("DOCPATCH_BRANCH"),
        help="Commit the documentation to this branch; empty writes files in place.",
    )
    generate_parser.add_argument(
        "--message",
        default=None,
        help="Subject line of the documentation commit.",
    )
    generate_parser.add_argument(
        "--limit",
        type=int,
        default=_env_int("DOCPATCH_LIMIT"),
        help="Maximum number of symbols to document (0 means no limit).",
    )
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the diff without writing files or committing.",
    )
    generate_parser.add_argument(
        "--include",
        action="append",
        default=None,
        help="Glob of files to include (repeatable).",
    )
    generate_parser.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Glob of files or directories to exclude (repeatable).",
    )
    generate_parser.add_argument(
        "--match",
        action="append",
        default=None,
        help="Only document identifiers matching this regular expression (repeatable).",
    )
    generate_parser.add_argument(
        "--files",
        nargs="+",
        default=None,
        help="Only scan these files, relative to the tree root.",
    )
    generate_parser.add_argument(
        "--workers",
        type=int,
        default=_env_int("DOCPATCH_WORKERS"),
        help="Number of files processed concurrently.",
    )
    generate_parser.add_argument(
        "--file-workers",
        type=int,
        default=_env_int("DOCPATCH_FILE_WORKERS"),
        help="Number of symbols per file documented concurrently.",
    )
    generate_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop dispatching new requests after this many seconds.",
    )
    generate_parser.add_argument(
        "--override",
        action="store_true",
        help="Replace existing documentation as well.",
    )
    generate_parser.add_argument(
        "--exported-only",
        action="store_true",
        help="Only document exported identifiers.",
    )
    generate_parser.add_argument(
        "--interface-methods",
        action="store_true",
        help="Also document methods declared inside interfaces.",
    )
    generate_parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort the run on the first generation failure.",
    )
    generate_parser.add_argument(
        "--footer",
        default=None,
        help="Paragraph appended to every generated comment.",
    )
    generate_parser.add_argument(
        "--model",
        default=None,
        help="Model name (defaults to DOCPATCH_LLM_MODEL / OPENAI_MODEL).",
    )
    generate_parser.add_argument(
        "--key",
        default=None,
        help="API key (defaults to DOCPATCH_LLM_API_KEY / OPENAI_API_KEY).",
    )
    generate_parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def build_config(args: argparse.Namespace) -> DocPatchConfig:
    """Load the tree's configuration and apply command-line overrides."""
    root = Path(args.path).expanduser()
    config = load_config(Path(args.config) if args.config else root)
    config.root = root.resolve()

    if args.model:
        config.llm.model = args.model
    if args.key:
        config.llm.api_key = args.key

    finder = config.finder
    if args.include:
        finder.include = list(args.include)
    if args.exclude:
        finder.exclude = finder.exclude + list(args.exclude)
    if args.match:
        finder.match = list(args.match)
    finder.override = finder.override or args.override
    finder.exported_only = finder.exported_only or args.exported_only
    finder.interface_methods = finder.interface_methods or args.interface_methods

    generation = config.generation
    if args.limit is not None:
        generation.item_limit = args.limit
    if args.workers is not None:
        generation.per_tree_concurrency = args.workers
    if args.file_workers is not None:
        generation.per_file_concurrency = args.file_workers
    if args.timeout is not None:
        generation.timeout = args.timeout
    if args.footer is not None:
        generation.footer = args.footer
    generation.fail_fast = generation.fail_fast or args.fail_fast

    if args.branch is not None:
        config.publish.branch = args.branch or None
    if args.message:
        config.publish.message = args.message
    return config


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docpatch commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        configure_logging(verbose=bool(args.verbose))
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
        return

    configure_logging(
        verbose=bool(args.verbose),
        log_file=Path(args.log_file) if args.log_file else None,
    )
    try:
        config = build_config(args)
        pipeline = Pipeline(config)
        report = pipeline.run(
            dry_run=bool(args.dry_run),
            files=args.files,
            token=CancelToken(config.generation.timeout),
        )
    except _FATAL_ERRORS as exc:
        parser.exit(1, f"docpatch generate failed: {exc}\nRun with --verbose for more details.\n")

    for line in render_report(report):
        print(line)


def render_report(report: RunReport) -> List[str]:
    """Return the human-readable summary lines of a run."""
    lines: List[str] = []
    if report.mode is Mode.DRY_RUN:
        if report.diffs:
            lines.append("Documentation changes (dry-run):")
            lines.extend(report.diffs[path].rstrip("\n") for path in sorted(report.diffs))
        else:
            lines.append("Nothing to document (dry-run)")
    elif not report.patch:
        lines.append("Nothing to document")
    elif report.mode is Mode.COMMIT:
        state = "committed to" if report.committed else "nothing new to commit on"
        lines.append(f"Documented {report.documented} symbols in {len(report.written)} files, {state} {report.branch}")
    else:
        lines.append(f"Documented {report.documented} symbols in {len(report.written)} files")

    for failure in report.failures:
        lines.append(f"Not documented: {failure.path}@{failure.identifier} ({failure.reason}: {failure.error})")
    skipped = report.generation.skipped()
    if report.cancelled:
        lines.append(f"Run cancelled; {len(skipped)} symbols were not attempted")
    return lines


if __name__ == "__main__":
    main(sys.argv[1:])
