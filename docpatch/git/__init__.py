"""Git integration for docpatch."""

from .publisher import PublishError, Publisher, build_commit_message

__all__ = ["PublishError", "Publisher", "build_commit_message"]
