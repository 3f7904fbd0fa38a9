"""Platform-agnostic protocol for pull request hosts and comment sinks."""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class AnchorMode(str, Enum):
    """How an inline comment is addressed by the host's review API."""

    LINE = "line"
    """Current form: new-file ``line`` plus ``side``."""

    POSITION = "position"
    """Legacy form: ``position`` within the file's patch."""


@dataclass
class PlatformFile:
    """Represents a file changed in a pull request."""

    filename: str
    """File path relative to repo root, in the new tree."""

    status: str
    """Change status: added, modified, removed, renamed."""

    patch: str | None
    """Unified diff patch. None for binary or oversized files."""

    additions: int
    """Number of added lines."""

    deletions: int
    """Number of deleted lines."""


@dataclass
class PlatformContext:
    """Context information for a pull request (PR/MR)."""

    number: int
    """PR/MR number."""

    title: str
    """PR/MR title."""

    url: str
    """Web URL of the PR/MR."""

    head_sha: str
    """Head commit SHA."""

    repo_identifier: str
    """GitHub: 'owner/repo', GitLab: project ID."""


@dataclass
class InlineComment:
    """A review comment anchored to an added line."""

    path: str
    body: str
    diff_position: int
    line: int | None
    side: str = "RIGHT"
    review_position: int | None = None
    """GitHub legacy position; falls back to diff_position when unknown."""


@runtime_checkable
class CodeReviewPlatform(Protocol):
    """Protocol for the pull request host.

    Implementations exist for GitHub and GitLab.
    """

    def get_context(self) -> PlatformContext:
        """Get the PR/MR context information."""
        ...

    def get_files(self) -> list[PlatformFile]:
        """Get the list of files changed in the PR/MR."""
        ...

    def get_file_content(self, file_path: str, ref: str) -> str | None:
        """Get the content of a file at a commit SHA or branch.

        Args:
            file_path: Path to the file relative to repo root.
            ref: Commit SHA or branch name.

        Returns:
            File content as string, or None if file not found.
        """
        ...

    def post_review(self, comments: list[InlineComment], body: str | None) -> None:
        """Add comments to a pending (draft) review, creating it if needed.

        Args:
            comments: Inline comments to add.
            body: Review body, or None to leave it unset.
        """
        ...

    def delete_empty_pending_review(self) -> bool:
        """Delete the pending review if it holds no comments.

        Returns:
            True if something was deleted.
        """
        ...
