"""Patch assembly: splice generated documentation into file contents."""

from __future__ import annotations

import textwrap
from typing import List, Mapping, Tuple

from .logging import Event, Observer, null_observer
from .models import Finding, Findings, GenerationReport, Patch

COMMENT_PREFIX = "// "
LINE_WIDTH = 80


def format_comment(text: str, indent: str = "", *, newline: str = "\n", width: int = LINE_WIDTH) -> str:
    """Render text as a block of Go line comments.

    Paragraphs separated by blank lines are wrapped independently and joined
    with an empty `//` line.
    """
    body_width = max(20, width - len(indent.expandtabs(4)) - len(COMMENT_PREFIX))
    lines: List[str] = []
    for paragraph in _paragraphs(text):
        if lines:
            lines.append(f"{indent}//")
        wrapped = textwrap.wrap(
            paragraph,
            width=body_width,
            break_long_words=False,
            break_on_hyphens=False,
        )
        lines.extend(f"{indent}{COMMENT_PREFIX}{line}".rstrip() for line in wrapped)
    return "".join(line + newline for line in lines)


class Assembler:
    """Builds a Patch from findings, scheduled sources, and generation results."""

    def __init__(self, observer: Observer | None = None) -> None:
        self._observer = observer or null_observer

    def assemble(
        self,
        findings: Findings,
        sources: Mapping[str, bytes],
        report: GenerationReport,
    ) -> Patch:
        patch = Patch()
        for path in sorted(findings):
            pairs = [
                (finding, text)
                for finding in findings[path]
                for text in (report.text_for(finding),)
                if text is not None
            ]
            if not pairs:
                continue
            original = sources[path]
            patch.files[path] = self.assemble_file(original, pairs)
            patch.originals[path] = original
            patch.identifiers[path] = sorted(finding.identifier for finding, _ in pairs)
            self._observer(Event("assembler.file_assembled", {"path": path, "inserted": len(pairs)}))
        return patch

    def assemble_file(self, source: bytes, pairs: List[Tuple[Finding, str]]) -> bytes:
        """Insert every comment into `source`, bottom of the file first."""
        newline = "\r\n" if b"\r\n" in source else "\n"
        output = bytearray(source)
        for finding, text in sorted(pairs, key=lambda pair: pair[0].anchor, reverse=True):
            comment = format_comment(text.rstrip(), finding.indent, newline=newline).encode("utf-8")
            start = finding.doc_start if finding.doc_start is not None else finding.anchor
            if start > 0 and source[start - 1 : start] != b"\n":
                # Mid-line declaration: move it onto its own line below the comment.
                while start > 0 and source[start - 1 : start] in (b" ", b"\t"):
                    start -= 1
                comment = newline.encode("utf-8") + comment
            output[start : finding.anchor] = comment
        return bytes(output)


def _paragraphs(text: str) -> List[str]:
    paragraphs: List[str] = []
    current: List[str] = []
    for line in text.strip().splitlines():
        if line.strip():
            current.append(line.strip())
        elif current:
            paragraphs.append(" ".join(current))
            current = []
    if current:
        paragraphs.append(" ".join(current))
    return paragraphs


__all__ = ["Assembler", "format_comment"]
