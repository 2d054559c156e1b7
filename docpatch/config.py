"""Configuration loading for docpatch (.docpatch.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".docpatch.yml"

DEFAULT_EXCLUDE_DIRS = ("testdata", "vendor")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is invalid."""


def _default_concurrency(cap: int) -> int:
    return max(1, min(cap, os.cpu_count() or 1))


@dataclass
class LLMConfig:
    """Language model settings from .docpatch.yml."""

    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    request_timeout: Optional[float] = None
    max_source_tokens: Optional[int] = None


@dataclass
class FinderConfig:
    """Which files and declarations the locator reports."""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    exclude_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    match: List[str] = field(default_factory=list)
    exported_only: bool = False
    interface_methods: bool = False
    override: bool = False


@dataclass
class GenerationConfig:
    """Scheduler budgets and run-level failure policy."""

    per_file_concurrency: int = field(default_factory=lambda: _default_concurrency(2))
    per_tree_concurrency: int = field(default_factory=lambda: _default_concurrency(4))
    item_limit: int = 0
    fail_fast: bool = False
    fail_on_empty: bool = False
    timeout: Optional[float] = None
    footer: Optional[str] = None


@dataclass
class PublishConfig:
    """Commit target for generated documentation."""

    branch: Optional[str] = None
    message: Optional[str] = None


@dataclass
class DocPatchConfig:
    """Represents the settings defined in .docpatch.yml."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    finder: FinderConfig = field(default_factory=FinderConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)

    def validate(self, *, dry_run: bool = False) -> None:
        """Reject invalid values and conflicting options before any work starts."""
        generation = self.generation
        if generation.per_file_concurrency < 1:
            raise ConfigError("per_file_concurrency must be at least 1")
        if generation.per_tree_concurrency < 1:
            raise ConfigError("per_tree_concurrency must be at least 1")
        if generation.item_limit < 0:
            raise ConfigError("item_limit must not be negative")
        if generation.timeout is not None and generation.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.llm.max_source_tokens is not None and self.llm.max_source_tokens < 1:
            raise ConfigError("max_source_tokens must be at least 1")
        if dry_run and self.publish.branch:
            raise ConfigError("dry run cannot be combined with a commit branch")


def load_config(config_path: Path) -> DocPatchConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return DocPatchConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    llm_data = _as_dict(data.get("llm"))
    llm = LLMConfig(
        model=_as_str(llm_data.get("model")),
        base_url=_as_str(llm_data.get("base_url")),
        api_key=_as_str(llm_data.get("api_key")),
        temperature=_as_float(llm_data.get("temperature")),
        max_tokens=_as_int(llm_data.get("max_tokens")),
        request_timeout=_as_float(llm_data.get("request_timeout")),
        max_source_tokens=_as_int(llm_data.get("max_source_tokens")),
    )

    finder_data = _as_dict(data.get("finder"))
    finder = FinderConfig()
    if finder_data:
        finder.include = _as_str_list(finder_data.get("include"))
        finder.exclude = _as_str_list(finder_data.get("exclude"))
        if "exclude_dirs" in finder_data:
            finder.exclude_dirs = _as_str_list(finder_data.get("exclude_dirs"))
        finder.match = _as_str_list(finder_data.get("match"))
        finder.exported_only = bool(_as_bool(finder_data.get("exported_only")))
        finder.interface_methods = bool(_as_bool(finder_data.get("interface_methods")))
        finder.override = bool(_as_bool(finder_data.get("override")))

    generation_data = _as_dict(data.get("generation"))
    generation = GenerationConfig()
    if generation_data:
        per_file = _as_int(generation_data.get("per_file_concurrency"))
        per_tree = _as_int(generation_data.get("per_tree_concurrency"))
        item_limit = _as_int(generation_data.get("item_limit"))
        if per_file is not None:
            generation.per_file_concurrency = per_file
        if per_tree is not None:
            generation.per_tree_concurrency = per_tree
        if item_limit is not None:
            generation.item_limit = item_limit
        generation.fail_fast = bool(_as_bool(generation_data.get("fail_fast")))
        generation.fail_on_empty = bool(_as_bool(generation_data.get("fail_on_empty")))
        generation.timeout = _as_float(generation_data.get("timeout"))
        generation.footer = _as_str(generation_data.get("footer"))

    publish_data = _as_dict(data.get("publish"))
    publish = PublishConfig(
        branch=_as_str(publish_data.get("branch")),
        message=_as_str(publish_data.get("message")),
    )

    return DocPatchConfig(
        root=root,
        llm=llm,
        finder=finder,
        generation=generation,
        publish=publish,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []
