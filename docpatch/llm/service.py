"""Documentation writer backed by a chat completion model."""

from __future__ import annotations

from typing import Tuple

from .. import golang
from ..logging import get_logger
from ..models import GenerationTask
from .client import ChatClient, Completion, InvalidResponseError

SYSTEM_PROMPT = (
    "You are a code documentation writer. "
    "You are given a file name, the source code of that file, and an identifier. "
    "Using these, you write the documentation for the type or function identified by the identifier, "
    "in GoDoc format."
)

CHARS_PER_TOKEN = 4
DEFAULT_MAX_SOURCE_TOKENS = 3000
MAX_MINIFY_LEVEL = 3


def build_prompt(path: str, identifier: str, code: str) -> str:
    name = identifier.rsplit(".", 1)[-1]
    return (
        f'Write the documentation for "{identifier}" in GoDoc format, with references to symbols '
        "wrapped within brackets. Provide only the documentation, excluding the input code and examples. "
        f'Begin the first sentence with "{name} ". Maintain brevity without sacrificing specificity. '
        "Write in the style of the Go library documentations. Do not link to any websites. "
        f'Here is the source code for "{path}":\n{code}'
    )


def normalize_answer(answer: str) -> str:
    """Strip whitespace and comment markers the model may have added."""
    lines = [line.strip() for line in answer.strip().splitlines()]
    lines = [line[2:].strip() if line.startswith("//") else line for line in lines]
    return "\n".join(lines).strip()


def estimate_tokens(source: bytes) -> int:
    return (len(source) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


class DocWriter:
    """Generation capability: prompts the model for one symbol at a time."""

    def __init__(
        self,
        client: ChatClient,
        *,
        max_source_tokens: int | None = None,
        footer: str | None = None,
    ) -> None:
        self.client = client
        self.max_source_tokens = max_source_tokens or DEFAULT_MAX_SOURCE_TOKENS
        self.footer = footer.strip() if footer else None
        self.logger = get_logger("llm")

    def generate_doc(self, task: GenerationTask) -> str:
        source, level = self._fit(task.source)
        completion = self._complete(task, source)
        if completion.truncated:
            if level >= MAX_MINIFY_LEVEL:
                raise InvalidResponseError(
                    f"{task.path} has too many tokens and cannot be minified further"
                )
            level += 1
            self.logger.debug(
                "Answer for %s@%s was cut off; retrying with minification level %d",
                task.path,
                task.identifier,
                level,
            )
            completion = self._complete(task, golang.minify(task.source, level))
            if completion.truncated:
                raise InvalidResponseError(f"answer for {task.identifier} exceeded the token limit")

        text = normalize_answer(completion.text)
        if not text:
            raise InvalidResponseError(f"empty documentation for {task.identifier}")
        if self.footer:
            text = f"{text}\n\n{self.footer}"
        return text

    def _fit(self, source: bytes) -> Tuple[bytes, int]:
        """Minify stepwise until the source fits the token budget."""
        level = 0
        fitted = source
        while estimate_tokens(fitted) > self.max_source_tokens and level < MAX_MINIFY_LEVEL:
            level += 1
            fitted = golang.minify(source, level)
        return fitted, level

    def _complete(self, task: GenerationTask, source: bytes) -> Completion:
        prompt = build_prompt(task.path, task.identifier, source.decode("utf-8", errors="replace"))
        self.logger.debug("Requesting documentation for %s@%s", task.path, task.identifier)
        return self.client.complete(prompt, system=SYSTEM_PROMPT)


__all__ = ["DocWriter", "SYSTEM_PROMPT", "build_prompt", "estimate_tokens", "normalize_answer"]
