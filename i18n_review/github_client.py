"""GitHub implementation of the CodeReviewPlatform protocol."""

from __future__ import annotations

import logging
from typing import Any

from github import Github, GithubException
from github.GithubException import UnknownObjectException

from i18n_review.platform_protocol import (
    AnchorMode,
    InlineComment,
    PlatformContext,
    PlatformFile,
)

logger = logging.getLogger(__name__)

PENDING_STATE = "PENDING"


class GitHubClient:
    """GitHub pull request client implementing CodeReviewPlatform protocol.

    Uses PyGithub. Reviews are left pending (no ``event``) so a human can edit
    them on GitHub before submitting.
    """

    def __init__(
        self,
        token: str,
        repo_name: str,
        pr_number: int,
        anchor_mode: AnchorMode = AnchorMode.LINE,
    ) -> None:
        """Initialize GitHub client.

        Args:
            token: GitHub API token.
            repo_name: Repository full name (owner/repo).
            pr_number: Pull request number.
            anchor_mode: How inline comments are addressed in a new review.
        """
        self._github = Github(token)
        self._repo = self._github.get_repo(repo_name)
        self._repo_name = repo_name
        self._pr = self._repo.get_pull(pr_number)
        self._anchor_mode = anchor_mode

    def get_context(self) -> PlatformContext:
        """Get the PR context information.

        Returns:
            PlatformContext with PR metadata.
        """
        return PlatformContext(
            number=self._pr.number,
            title=self._pr.title,
            url=self._pr.html_url,
            head_sha=self._pr.head.sha,
            repo_identifier=self._repo_name,
        )

    def get_files(self) -> list[PlatformFile]:
        """Get the list of files changed in the PR.

        Returns:
            List of PlatformFile objects from the PR.
        """
        return [
            PlatformFile(
                filename=file.filename,
                status=file.status,
                patch=file.patch,
                additions=file.additions,
                deletions=file.deletions,
            )
            for file in self._pr.get_files()
        ]

    def get_file_content(self, file_path: str, ref: str) -> str | None:
        """Get the content of a file at a ref.

        Args:
            file_path: Path to the file relative to repo root.
            ref: Commit SHA or branch name.

        Returns:
            File content as string, or None if file not found.
        """
        try:
            content_file = self._repo.get_contents(file_path, ref=ref)
        except UnknownObjectException:
            logger.warning("File not found: %s at %s", file_path, ref)
            return None
        except GithubException as error:
            logger.warning("Could not fetch %s at %s: %s", file_path, ref, error)
            return None

        if isinstance(content_file, list):
            logger.warning("Expected a file but found a directory: %s", file_path)
            return None
        return content_file.decoded_content.decode("utf-8")

    def post_review(self, comments: list[InlineComment], body: str | None) -> None:
        """Add comments to the pending review, creating a draft review if none exists.

        GitHub allows one pending review per user. When one already exists,
        comments are posted individually against its commit and its body is
        extended.

        Args:
            comments: Inline comments to post.
            body: Review body text, or None.
        """
        pending = self._find_pending_review()
        if pending is None:
            self._create_pending_review(comments, body)
            logger.info("Created draft review with %d line comments", len(comments))
            return

        logger.info("Found existing pending review, adding %d comments", len(comments))
        commit = self._repo.get_commit(pending.commit_id)
        self._post_individual_comments(comments, commit)
        if body:
            new_body = f"{pending.body}\n\n---\n{body}" if pending.body else body
            pending.edit(body=new_body)

    def delete_empty_pending_review(self) -> bool:
        """Delete the pending review when it has no comments.

        Returns:
            True if a pending review was deleted.
        """
        pending = self._find_pending_review()
        if pending is None:
            logger.info("No pending review found")
            return False

        if list(self._pr.get_single_review_comments(pending.id)):
            logger.info("Pending review %s has comments and will not be deleted", pending.id)
            return False

        pending.delete()
        logger.info("Deleted empty pending review %s", pending.id)
        return True

    def _find_pending_review(self) -> Any | None:
        for review in self._pr.get_reviews():
            if review.state == PENDING_STATE:
                return review
        return None

    def _create_pending_review(self, comments: list[InlineComment], body: str | None) -> None:
        """Create a draft review in one call.

        Falls back to individual comments on 422 errors, which GitHub returns when
        any single anchor is rejected.

        Args:
            comments: Inline comments to include.
            body: Review body text, or None.
        """
        last_commit = list(self._pr.get_commits())[-1]
        review_kwargs: dict[str, Any] = {
            "commit": last_commit,
            "comments": [self._to_review_comment(comment) for comment in comments],
        }
        if body:
            review_kwargs["body"] = body

        try:
            self._pr.create_review(**review_kwargs)
        except GithubException as error:
            if error.status != 422 or not comments:
                raise
            logger.warning("Draft review failed with 422, falling back to individual comments")
            self._post_individual_comments(comments, last_commit)
            if body:
                self._pr.create_review(commit=last_commit, body=body)

    def _to_review_comment(self, comment: InlineComment) -> dict[str, Any]:
        if self._anchor_mode is AnchorMode.POSITION:
            return {
                "path": comment.path,
                "position": comment.review_position or comment.diff_position,
                "body": comment.body,
            }
        return {
            "path": comment.path,
            "line": comment.line,
            "side": comment.side,
            "body": comment.body,
        }

    def _post_individual_comments(self, comments: list[InlineComment], commit: Any) -> None:
        """Post comments one by one, addressed by line.

        Args:
            comments: Inline comments to post.
            commit: The commit object to attach comments to.
        """
        for comment in comments:
            if comment.line is None:
                logger.warning(
                    "Skipping comment on %s position %s: no new-file line",
                    comment.path,
                    comment.diff_position,
                )
                continue
            try:
                self._pr.create_review_comment(
                    body=comment.body,
                    commit=commit,
                    path=comment.path,
                    line=comment.line,
                    side=comment.side,
                )
            except GithubException as error:
                logger.warning(
                    "Skipping comment on %s line %s: %s",
                    comment.path,
                    comment.line,
                    error,
                )
