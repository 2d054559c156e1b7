"""Tests for the documentation writer capability."""

from __future__ import annotations

from typing import List

import pytest

from docpatch.llm.client import Completion, InvalidResponseError
from docpatch.llm.service import DocWriter, build_prompt, estimate_tokens, normalize_answer
from docpatch.models import Finding, GenerationTask
from tests._fixtures.repo_builder import go_source

SOURCE = go_source(
    """
    package calc

    func helper() int {
    	return 41
    }

    func Answer() int {
    	return helper() + 1
    }
    """
).encode()


class FakeClient:
    def __init__(self, completions: List[Completion]) -> None:
        self.completions = list(completions)
        self.prompts: List[str] = []
        self.systems: List[str] = []

    def complete(self, prompt: str, *, system: str | None = None) -> Completion:
        self.prompts.append(prompt)
        self.systems.append(system or "")
        return self.completions.pop(0)


def _task(identifier: str = "Answer") -> GenerationTask:
    finding = Finding(path="calc/calc.go", identifier=identifier, kind="function", anchor=0)
    return GenerationTask(finding=finding, source=SOURCE)


def test_build_prompt_names_symbol_and_file() -> None:
    prompt = build_prompt("calc/calc.go", "*Calc.Add", "package calc")

    assert '"*Calc.Add"' in prompt
    assert 'Begin the first sentence with "Add "' in prompt
    assert prompt.endswith('Here is the source code for "calc/calc.go":\npackage calc')


def test_normalize_answer_strips_comment_markers() -> None:
    assert normalize_answer("  // Answer returns 42.\n// It is constant.  ") == "Answer returns 42.\nIt is constant."


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens(b"") == 0
    assert estimate_tokens(b"abcde") == 2


def test_writer_returns_normalized_text_with_footer() -> None:
    client = FakeClient([Completion("// Answer returns the answer.\n", "stop")])
    writer = DocWriter(client, footer="Generated by a model. ")

    text = writer.generate_doc(_task())

    assert text == "Answer returns the answer.\n\nGenerated by a model."
    assert "return helper() + 1" in client.prompts[0]
    assert client.systems[0]


def test_writer_minifies_source_over_budget() -> None:
    client = FakeClient([Completion("Answer returns 42.", "stop")])
    writer = DocWriter(client, max_source_tokens=estimate_tokens(SOURCE) - 1)

    writer.generate_doc(_task())

    assert "return 41" not in client.prompts[0]
    assert "return helper() + 1" in client.prompts[0]


def test_writer_retries_once_with_minified_source_when_cut_off() -> None:
    client = FakeClient([Completion("Answer ret", "length"), Completion("Answer returns 42.", "stop")])

    text = DocWriter(client).generate_doc(_task())

    assert text == "Answer returns 42."
    assert len(client.prompts) == 2
    assert "return 41" in client.prompts[0]
    assert "return 41" not in client.prompts[1]


def test_writer_gives_up_after_second_cut_off() -> None:
    client = FakeClient([Completion("Answer", "length"), Completion("Answer", "length")])

    with pytest.raises(InvalidResponseError):
        DocWriter(client).generate_doc(_task())


def test_writer_rejects_empty_answer() -> None:
    client = FakeClient([Completion("  // ", "stop")])

    with pytest.raises(InvalidResponseError):
        DocWriter(client).generate_doc(_task())
