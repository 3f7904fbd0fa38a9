"""GitLab client implementing CodeReviewPlatform protocol."""

import logging

import gitlab
from gitlab.exceptions import GitlabCreateError, GitlabGetError

from i18n_review.diff_parser import LineKind, classify_line
from i18n_review.platform_protocol import InlineComment, PlatformContext, PlatformFile

logger = logging.getLogger(__name__)


class GitLabClient:
    """GitLab Merge Request client implementing CodeReviewPlatform protocol.

    Draft notes play the role of GitHub's pending review: they stay invisible
    to others until the reviewer publishes them.
    """

    def __init__(
        self,
        token: str,
        project_id: int,
        mr_iid: int,
        gitlab_url: str = "https://gitlab.com",
    ) -> None:
        """Initialize GitLab client with project and MR references.

        Args:
            token: GitLab access token (private_token).
            project_id: GitLab project ID.
            mr_iid: Merge request internal ID.
            gitlab_url: GitLab instance URL. Defaults to https://gitlab.com.
        """
        self._gitlab = gitlab.Gitlab(gitlab_url, private_token=token)
        self._project = self._gitlab.projects.get(project_id)
        self._merge_request = self._project.mergerequests.get(mr_iid)
        self._project_id = project_id

    def get_context(self) -> PlatformContext:
        """Get MR context information.

        Returns:
            PlatformContext with MR metadata.
        """
        merge_request = self._merge_request
        return PlatformContext(
            number=merge_request.iid,
            title=merge_request.title,
            url=merge_request.web_url,
            head_sha=merge_request.sha,
            repo_identifier=str(self._project_id),
        )

    def get_files(self) -> list[PlatformFile]:
        """List the MR's changed files.

        GitLab does not report per-file counts, so they are taken from the diff.
        """
        files = []
        for change in self._merge_request.changes()["changes"]:
            diff_text = change.get("diff") or ""
            kinds = [classify_line(line)[0] for line in diff_text.splitlines()]
            files.append(
                PlatformFile(
                    filename=change["new_path"],
                    status=_change_status(change),
                    patch=diff_text or None,
                    additions=kinds.count(LineKind.ADDED),
                    deletions=kinds.count(LineKind.DELETED),
                )
            )
        return files

    def get_file_content(self, file_path: str, ref: str) -> str | None:
        """Get the content of a file at a ref.

        Args:
            file_path: Path to the file relative to repo root.
            ref: Commit SHA or branch name.

        Returns:
            File content as string, or None if file not found.
        """
        try:
            file_obj = self._project.files.get(file_path=file_path, ref=ref)
        except GitlabGetError:
            logger.warning("File not found: %s at %s", file_path, ref)
            return None
        return file_obj.decode().decode("utf-8")

    def post_review(self, comments: list[InlineComment], body: str | None) -> None:
        """Create one positioned draft note per comment and a draft note for the body.

        A GitlabCreateError on a single comment (e.g. line outside the diff) is
        logged and the comment skipped.

        Args:
            comments: Inline comments to post.
            body: Review body text, or None.
        """
        merge_request = self._merge_request
        diff_refs = merge_request.diff_refs

        for comment in comments:
            if comment.line is None:
                logger.warning(
                    "Skipping comment on %s position %s: no new-file line",
                    comment.path,
                    comment.diff_position,
                )
                continue
            try:
                merge_request.draft_notes.create(
                    {
                        "note": comment.body,
                        "position": {
                            "base_sha": diff_refs["base_sha"],
                            "start_sha": diff_refs["start_sha"],
                            "head_sha": diff_refs["head_sha"],
                            "position_type": "text",
                            "new_path": comment.path,
                            "new_line": comment.line,
                        },
                    }
                )
            except GitlabCreateError as error:
                logger.warning(
                    "Failed to create draft note on %s:%s - %s",
                    comment.path,
                    comment.line,
                    error,
                )

        if body:
            merge_request.draft_notes.create({"note": body})

    def delete_empty_pending_review(self) -> bool:
        """Delete body-only draft notes when no positioned draft note exists.

        Returns:
            True if any draft note was deleted.
        """
        drafts = self._merge_request.draft_notes.list(get_all=True)
        if not drafts:
            logger.info("No draft notes found")
            return False
        if any(getattr(draft, "position", None) for draft in drafts):
            logger.info("Draft review has line comments and will not be deleted")
            return False

        for draft in drafts:
            draft.delete()
        logger.info("Deleted %d body-only draft notes", len(drafts))
        return True


def _change_status(change: dict) -> str:
    if change.get("new_file"):
        return "added"
    if change.get("deleted_file"):
        return "removed"
    if change.get("renamed_file"):
        return "renamed"
    return "modified"
