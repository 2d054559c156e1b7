"""Tests for the symbol locator."""

from __future__ import annotations

import pytest

from docpatch.config import ConfigError, FinderConfig
from docpatch.finder import Finder, LocatorError
from docpatch.logging import Event
from tests._fixtures.repo_builder import memory_tree


def _identifiers(findings, path):
    return [finding.identifier for finding in findings[path]]


def test_finder_reports_undocumented_symbols_sorted_ordinally() -> None:
    tree = memory_tree(
        {
            "pkg/a.go": """
            package pkg

            func baz() {}

            func bar() {}

            func Foo() {}

            // Documented is fine.
            func Documented() {}
            """,
        }
    )

    findings = Finder(tree).find()

    assert list(findings) == ["pkg/a.go"]
    assert _identifiers(findings, "pkg/a.go") == ["Foo", "bar", "baz"]
    assert all(finding.path == "pkg/a.go" for finding in findings["pkg/a.go"])


def test_finder_skips_hidden_vendored_and_test_files() -> None:
    tree = memory_tree(
        {
            "main.go": "package main\n\nfunc Run() {}\n",
            "main_test.go": "package main\n\nfunc TestRun() {}\n",
            "README.md": "# readme\n",
            ".git/hooks.go": "package hooks\n\nfunc Hook() {}\n",
            "testdata/fixture.go": "package fixture\n\nfunc Fixture() {}\n",
            "vendor/lib/lib.go": "package lib\n\nfunc Lib() {}\n",
            "internal/util.go": "package internal\n\nfunc Util() {}\n",
        }
    )
    events = []

    findings = Finder(tree, observer=events.append).find()

    assert sorted(findings) == ["internal/util.go", "main.go"]
    skipped = {event.fields["path"]: event.fields["reason"] for event in events if event.name.endswith("_skipped")}
    assert skipped[".git"] == "hidden"
    assert skipped["testdata"] == "excluded directory"
    assert skipped["vendor"] == "excluded directory"
    assert skipped["main_test.go"] == "test file"
    assert skipped["README.md"] == "not a Go file"
    done = [event for event in events if event.name == "finder.done"]
    assert done == [Event("finder.done", {"files": 2, "findings": 2})]


def test_finder_custom_exclude_dirs_replace_defaults() -> None:
    tree = memory_tree(
        {
            "vendor/lib.go": "package lib\n\nfunc Lib() {}\n",
            "gen/out.go": "package gen\n\nfunc Out() {}\n",
        }
    )

    findings = Finder(tree, FinderConfig(exclude_dirs=["gen"])).find()

    assert list(findings) == ["vendor/lib.go"]


def test_finder_include_and_exclude_patterns() -> None:
    tree = memory_tree(
        {
            "api/handler.go": "package api\n\nfunc Handle() {}\n",
            "api/handler.pb.go": "package api\n\nfunc Generated() {}\n",
            "cmd/main.go": "package main\n\nfunc Main() {}\n",
        }
    )

    config = FinderConfig(include=["api/**"], exclude=["*.pb.go"])
    findings = Finder(tree, config).find()

    assert list(findings) == ["api/handler.go"]


def test_finder_exclude_pattern_skips_directory() -> None:
    tree = memory_tree(
        {
            "internal/mocks/mock.go": "package mocks\n\nfunc Mock() {}\n",
            "internal/real.go": "package internal\n\nfunc Real() {}\n",
        }
    )

    findings = Finder(tree, FinderConfig(exclude=["internal/mocks/**"])).find()

    assert list(findings) == ["internal/real.go"]


def test_finder_exported_only_and_match_filters() -> None:
    tree = memory_tree(
        {
            "a.go": """
            package a

            type Client struct{}

            func (c *Client) Do() {}

            func (c *Client) retry() {}

            func NewClient() *Client { return nil }
            """,
        }
    )

    exported = Finder(tree, FinderConfig(exported_only=True)).find()
    matched = Finder(tree, FinderConfig(match=[r"^\*Client\."])).find()

    assert _identifiers(exported, "a.go") == ["*Client.Do", "Client", "NewClient"]
    assert _identifiers(matched, "a.go") == ["*Client.Do", "*Client.retry"]


def test_finder_rejects_invalid_match_pattern() -> None:
    with pytest.raises(ConfigError):
        Finder(memory_tree({}), FinderConfig(match=["("]))


def test_finder_keeps_first_duplicate_identifier() -> None:
    tree = memory_tree(
        {
            "a.go": """
            package a

            func init() {}

            func init() {}
            """,
        }
    )

    findings = Finder(tree).find()

    assert _identifiers(findings, "a.go") == ["init"]
    assert findings["a.go"][0].anchor == len("package a\n\n")


def test_finder_override_reports_documented_symbols_with_doc_start() -> None:
    tree = memory_tree(
        {
            "a.go": """
            package a

            // Old text.
            func Foo() {}
            """,
        }
    )

    (finding,) = Finder(tree, FinderConfig(override=True)).find()["a.go"]

    assert finding.identifier == "Foo"
    assert finding.doc_start == len("package a\n\n")
    assert finding.anchor == len("package a\n\n// Old text.\n")


def test_finder_parse_error_names_path() -> None:
    tree = memory_tree(
        {
            "ok.go": "package ok\n\nfunc Ok() {}\n",
            "pkg/broken.go": "package pkg\n\nfunc Broken( {\n",
        }
    )

    with pytest.raises(LocatorError) as excinfo:
        Finder(tree).find()

    assert excinfo.value.path == "pkg/broken.go"
    assert "pkg/broken.go" in str(excinfo.value)


def test_finder_find_files_scans_only_given_paths() -> None:
    tree = memory_tree(
        {
            "a.go": "package a\n\nfunc A() {}\n",
            "b.go": "package a\n\nfunc B() {}\n",
        }
    )
    finder = Finder(tree)

    findings = finder.find_files(["b.go", "notes.txt"])

    assert list(findings) == ["b.go"]
    assert finder.sources == {"b.go": tree.read("b.go")}


def test_finder_missing_file_is_a_locator_error() -> None:
    with pytest.raises(LocatorError) as excinfo:
        Finder(memory_tree({})).find_files(["missing.go"])

    assert excinfo.value.path == "missing.go"
