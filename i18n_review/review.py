"""Analyze i18n pull requests and post the AI review as a draft review."""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from i18n_review.ai_reviewer import AIReviewer, LocaleFileChanges, TranslationComment
from i18n_review.config import ConfigurationError, Settings
from i18n_review.diff_parser import AnchorMap, filter_locale_files, parse_file_patches
from i18n_review.github_client import GitHubClient
from i18n_review.gitlab_client import GitLabClient
from i18n_review.platform_protocol import AnchorMode, CodeReviewPlatform, InlineComment
from i18n_review.reference_cache import ReferenceCache
from i18n_review.report import (
    AnchoredLine,
    FileReport,
    ReportComment,
    ReportSummary,
    ReviewReport,
    SkippedFile,
    default_report_path,
    load_report,
    save_report,
)

logger = logging.getLogger(__name__)

DEFAULT_OVERALL_COMMENT = (
    "My AI helper left you a few comments. I always believe the human over the AI, "
    "so feel free to disregard them! Leave me a comment when you're satisfied with "
    "everything, please. :)"
)
REVIEW_FOOTER = "*Drafted with i18n-review tooling - feedback welcome*"


def create_platform(settings: Settings, pr_number: int) -> CodeReviewPlatform:
    """Create the host client selected by the settings.

    Args:
        settings: Runtime settings.
        pr_number: Pull request (or merge request IID) number.

    Returns:
        Platform client implementing CodeReviewPlatform protocol.

    Raises:
        ConfigurationError: If the platform's credentials are missing.
    """
    if settings.platform == "gitlab":
        if not settings.gitlab_token or settings.gitlab_project_id is None:
            raise ConfigurationError("GITLAB_TOKEN and CI_PROJECT_ID must be set for GitLab.")
        return GitLabClient(
            token=settings.gitlab_token,
            project_id=settings.gitlab_project_id,
            mr_iid=pr_number,
            gitlab_url=settings.gitlab_url,
        )

    if not settings.github_token:
        raise ConfigurationError("GITHUB_TOKEN must be set.")
    if not settings.repo_name:
        raise ConfigurationError("GITHUB_REPOSITORY (or GITHUB_OWNER and GITHUB_REPO) must be set.")
    return GitHubClient(
        token=settings.github_token,
        repo_name=settings.repo_name,
        pr_number=pr_number,
        anchor_mode=settings.anchor_mode,
    )


def validate_comments(
    comments: list[TranslationComment], anchors: AnchorMap
) -> dict[str, list[ReportComment]]:
    """Keep only comments anchored to an added line, grouped by filename.

    Args:
        comments: Comments returned by the model.
        anchors: Added lines of the PR.

    Returns:
        Mapping of filename to validated comments carrying both anchors.
    """
    valid: dict[str, list[ReportComment]] = {}
    for comment in comments:
        line = anchors.get(comment.filename, comment.diff_position)
        if line is None:
            logger.warning(
                "Discarding comment on %s:%s (not an added line)",
                comment.filename,
                comment.diff_position,
            )
            continue
        valid.setdefault(comment.filename, []).append(
            ReportComment(
                type=comment.type,
                diff_position=line.diff_position,
                new_line=line.new_line,
                review_position=line.review_position,
                message=comment.message,
            )
        )
    return valid


def build_overall_comment(model_overall: str) -> str:
    if not model_overall:
        return DEFAULT_OVERALL_COMMENT
    return f"{DEFAULT_OVERALL_COMMENT}\n\nMy AI helper says: {model_overall}"


def analyze_pull_request(
    platform: CodeReviewPlatform,
    reviewer: AIReviewer,
    settings: Settings,
    reference_cache: ReferenceCache | None = None,
) -> ReviewReport | None:
    """Run the analysis pipeline for one pull request.

    Pipeline steps:
    1. Get PR context and changed files
    2. Keep locale files, list the rest as skipped
    3. Parse patches; unparseable files are skipped, not fatal
    4. Fetch current content of each file and the cached reference document
    5. Review all added lines with one model call
    6. Drop comments whose anchor is not an added line

    Args:
        platform: Host client.
        reviewer: AI reviewer.
        settings: Runtime settings.
        reference_cache: Cache for the reference document. Built from settings if None.

    Returns:
        ReviewReport, or None when the PR has no locale files.
    """
    context = platform.get_context()
    logger.info("PR #%s: %s", context.number, context.title)

    files = platform.get_files()
    logger.info("Found %d changed files", len(files))

    locale_files, non_locale_files = filter_locale_files(files, settings.locale_pattern)
    for file in non_locale_files:
        logger.info("Skipping non-locale file %s (%s)", file.filename, file.status)

    if not locale_files:
        logger.warning("No locale files matching %s in PR #%s", settings.locale_pattern, context.number)
        return None

    skipped = [
        SkippedFile(filename=file.filename, status=file.status, reason="not a locale file")
        for file in non_locale_files
    ]
    files_by_name = {file.filename: file for file in locale_files}

    patch_set = parse_file_patches({file.filename: file.patch for file in locale_files})
    skipped.extend(
        SkippedFile(
            filename=failure.filename,
            status=files_by_name[failure.filename].status,
            reason=failure.reason,
        )
        for failure in patch_set.failures
    )

    changes: list[LocaleFileChanges] = []
    for file_patch in patch_set.files:
        added = file_patch.added_lines
        if not added:
            logger.warning("No added lines in %s", file_patch.filename)
            continue
        logger.info("%s: %d added lines to analyze", file_patch.filename, len(added))
        changes.append(
            LocaleFileChanges(
                filename=file_patch.filename,
                added_lines=added,
                current_content=platform.get_file_content(file_patch.filename, context.head_sha),
            )
        )

    cache = reference_cache or ReferenceCache(settings.reference_cache_file, settings.cache_ttl_seconds)
    reference = cache.get(
        lambda: platform.get_file_content(settings.reference_path, settings.reference_ref)
    )

    review = reviewer.review_translations(changes, context.title, reference)
    comments_by_file = validate_comments(review.comments, AnchorMap.from_patches(patch_set.files))

    file_reports = [
        FileReport(
            filename=change.filename,
            status=files_by_name[change.filename].status,
            additions=files_by_name[change.filename].additions,
            deletions=files_by_name[change.filename].deletions,
            added_lines=[
                AnchoredLine(
                    diff_position=line.diff_position,
                    new_line=line.new_line,
                    review_position=line.review_position,
                    text=line.text,
                )
                for line in change.added_lines
            ],
            comments=comments_by_file.get(change.filename, []),
        )
        for change in changes
    ]

    report = ReviewReport(
        pr_number=context.number,
        pr_title=context.title,
        pr_url=context.url,
        analyzed_at=datetime.now(timezone.utc),
        files=file_reports,
        skipped_files=skipped,
        overall_comment=build_overall_comment(review.overall),
        summary=ReportSummary.from_files(
            file_reports,
            total_files=len(files),
            locale_files=len(locale_files),
            skipped_files=len(skipped),
        ),
    )
    logger.info(
        "Analysis complete: %d comments in %d locale files",
        report.summary.total_comments,
        report.summary.locale_files,
    )
    return report


def format_comment_body(comment: ReportComment) -> str:
    return comment.message.strip()


def format_review_body(overall_comment: str) -> str:
    """Format the review body shown above the line comments.

    Args:
        overall_comment: PR-level comment from the report.

    Returns:
        Review body with a footer.
    """
    return f"📋 {overall_comment}\n\n---\n{REVIEW_FOOTER}"


def build_inline_comments(report: ReviewReport, anchor_mode: AnchorMode) -> list[InlineComment]:
    """Turn report comments into inline comments for the host.

    Comments with a non-positive position are dropped. In line mode, comments
    without a new-file line are dropped too.

    Args:
        report: Loaded report.
        anchor_mode: Anchor form the host will receive.

    Returns:
        List of InlineComment in report order.
    """
    inline_comments: list[InlineComment] = []
    for filename, comment in report.iter_comments():
        if comment.diff_position <= 0:
            logger.warning("Skipping comment on %s with position %s", filename, comment.diff_position)
            continue
        if anchor_mode is AnchorMode.LINE and comment.new_line is None:
            logger.warning(
                "Skipping comment on %s position %s: no new-file line",
                filename,
                comment.diff_position,
            )
            continue
        inline_comments.append(
            InlineComment(
                path=filename,
                body=format_comment_body(comment),
                diff_position=comment.diff_position,
                line=comment.new_line,
                review_position=comment.review_position,
            )
        )
    return inline_comments


def post_report(
    platform: CodeReviewPlatform, report: ReviewReport, anchor_mode: AnchorMode = AnchorMode.LINE
) -> int:
    """Post a report's comments as a pending review.

    Args:
        platform: Host client.
        report: Report to post.
        anchor_mode: Anchor form the host will receive.

    Returns:
        Number of line comments sent.
    """
    comments = build_inline_comments(report, anchor_mode)
    body = format_review_body(report.overall_comment) if report.overall_comment else None

    if not comments and body is None:
        logger.warning("No comments to post for PR #%s", report.pr_number)
        return 0

    platform.post_review(comments, body)
    logger.info("Posted %d line comments to PR #%s", len(comments), report.pr_number)
    return len(comments)


def resolve_output_path(output: str, report_dir: Path, pr_number: int) -> Path:
    """A bare file name lands in the report directory; a path is used as is."""
    if not output:
        return default_report_path(report_dir, pr_number)
    path = Path(output)
    if path.parent == Path("."):
        return Path(report_dir) / path
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="i18n-review",
        description="Analyze i18n pull request changes and validate them with AI",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a PR and save a validation report")
    analyze.add_argument("pr_number", type=int)
    analyze.add_argument("-o", "--output", default="", help="Report file (bare names go to the report dir)")
    analyze.add_argument("-d", "--dry-run", action="store_true", help="Analyze without saving the report")

    post = subparsers.add_parser("post", help="Post comments from a saved report to a PR")
    post.add_argument("pr_number", type=int)
    post.add_argument("-r", "--report", default="", help="Report file (defaults to <report dir>/<pr>.json)")

    review = subparsers.add_parser("review", help="Analyze a PR and post comments in one step")
    review.add_argument("pr_number", type=int)
    review.add_argument("-d", "--dry-run", action="store_true", help="Save the report without posting")

    clean = subparsers.add_parser("clean-pending", help="Delete an empty pending review")
    clean.add_argument("pr_number", type=int)

    return parser


def run_command(args: argparse.Namespace, settings: Settings) -> int:
    """Execute one parsed CLI command.

    Args:
        args: Parsed arguments.
        settings: Runtime settings.

    Returns:
        Process exit status.
    """
    platform = create_platform(settings, args.pr_number)

    if args.command == "clean-pending":
        platform.delete_empty_pending_review()
        return 0

    if args.command == "post":
        report_path = Path(args.report) if args.report else default_report_path(settings.report_dir, args.pr_number)
        report = load_report(report_path)
        if report.pr_number != args.pr_number:
            raise ValueError(f"Report {report_path} is for PR #{report.pr_number}, not #{args.pr_number}")
        post_report(platform, report, settings.anchor_mode)
        return 0

    reviewer = AIReviewer(api_key=settings.openai_api_key, model=settings.model)
    report = analyze_pull_request(platform, reviewer, settings)
    if report is None:
        logger.warning("Nothing to review in PR #%s", args.pr_number)
        return 0

    if args.command == "analyze" and args.dry_run:
        logger.info("Dry run: report not saved")
        return 0

    output = resolve_output_path(getattr(args, "output", ""), settings.report_dir, args.pr_number)
    save_report(report, output)

    if args.command == "review":
        if args.dry_run:
            logger.info("Dry run: skipping comment posting")
            return 0
        post_report(platform, report, settings.anchor_mode)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point of the ``i18n-review`` command."""
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except ConfigurationError as error:
        logging.basicConfig(level=logging.INFO)
        logger.error("Invalid configuration: %s", error)
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return run_command(args, settings)
    except (ConfigurationError, FileNotFoundError, ValueError) as error:
        logger.error("%s", error)
        return 1


if __name__ == "__main__":
    sys.exit(main())
