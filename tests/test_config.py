"""Tests for docpatch.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from docpatch.config import ConfigError, DocPatchConfig, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, DocPatchConfig)
    assert config.root == tmp_path.resolve()
    assert config.llm.model is None
    assert config.finder.exclude_dirs == ["testdata", "vendor"]
    assert config.finder.include == []
    assert config.finder.override is False
    assert 1 <= config.generation.per_file_concurrency <= 2
    assert 1 <= config.generation.per_tree_concurrency <= 4
    assert config.generation.item_limit == 0
    assert config.publish.branch is None
    config.validate()


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    (tmp_path / ".docpatch.yml").write_text(
        """
llm:
  model: "gpt-4o-mini"
  base_url: "http://localhost:8080/v1"
  api_key: "test-key"
  temperature: 0.2
  max_tokens: 256
  request_timeout: 30
  max_source_tokens: 2000
finder:
  include: ["pkg/**"]
  exclude:
    - "*.pb.go"
  exclude_dirs: [testdata]
  match: ["^New"]
  exported_only: true
  interface_methods: yes
  override: false
generation:
  per_file_concurrency: 3
  per_tree_concurrency: 5
  item_limit: 10
  fail_fast: true
  timeout: 120
  footer: "Generated documentation."
publish:
  branch: docs-patch
  message: "docs: fill gaps"
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.llm.model == "gpt-4o-mini"
    assert config.llm.base_url == "http://localhost:8080/v1"
    assert config.llm.api_key == "test-key"
    assert config.llm.temperature == pytest.approx(0.2)
    assert config.llm.max_tokens == 256
    assert config.llm.request_timeout == pytest.approx(30.0)
    assert config.llm.max_source_tokens == 2000
    assert config.finder.include == ["pkg/**"]
    assert config.finder.exclude == ["*.pb.go"]
    assert config.finder.exclude_dirs == ["testdata"]
    assert config.finder.match == ["^New"]
    assert config.finder.exported_only is True
    assert config.finder.interface_methods is True
    assert config.finder.override is False
    assert config.generation.per_file_concurrency == 3
    assert config.generation.per_tree_concurrency == 5
    assert config.generation.item_limit == 10
    assert config.generation.fail_fast is True
    assert config.generation.fail_on_empty is False
    assert config.generation.timeout == pytest.approx(120.0)
    assert config.generation.footer == "Generated documentation."
    assert config.publish.branch == "docs-patch"
    assert config.publish.message == "docs: fill gaps"


def test_load_config_accepts_explicit_file(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.yml"
    config_file.write_text("generation:\n  item_limit: 4\n", encoding="utf-8")

    config = load_config(config_file)

    assert config.generation.item_limit == 4


def test_load_config_empty_file_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / ".docpatch.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path).generation.item_limit == 0


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".docpatch.yml").write_text("llm: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / ".docpatch.yml").write_text("- one\n- two\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


@pytest.mark.parametrize(
    ("section", "field", "value"),
    [
        ("generation", "per_file_concurrency", 0),
        ("generation", "per_tree_concurrency", -1),
        ("generation", "item_limit", -5),
        ("generation", "timeout", 0),
        ("llm", "max_source_tokens", 0),
    ],
)
def test_validate_rejects_invalid_values(tmp_path: Path, section: str, field: str, value: object) -> None:
    config = DocPatchConfig(root=tmp_path)
    setattr(getattr(config, section), field, value)

    with pytest.raises(ConfigError):
        config.validate()


def test_validate_rejects_dry_run_with_branch(tmp_path: Path) -> None:
    config = DocPatchConfig(root=tmp_path)
    config.publish.branch = "docs-patch"

    config.validate()
    with pytest.raises(ConfigError):
        config.validate(dry_run=True)
