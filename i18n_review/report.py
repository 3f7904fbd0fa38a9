"""Versioned JSON report of a pull request analysis.

Reports are written with camelCase keys and tagged with ``schemaVersion``.
Untagged reports from earlier versions of the tool (per-file ``issues`` and
``suggestions``, per-file ``overall``) are upgraded on load.
"""

import json
import logging
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

REPORT_SCHEMA_VERSION = 2


class ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnchoredLine(ReportModel):
    """An added line and its anchors.

    ``review_position`` is GitHub's legacy position. Reports written by earlier
    versions of the tool do not have it.
    """

    diff_position: int
    new_line: int | None = None
    review_position: int | None = None
    text: str = ""


class ReportComment(ReportModel):
    """A validated model comment, ready to be posted."""

    type: str = "info"
    diff_position: int
    new_line: int | None = None
    review_position: int | None = None
    message: str


class FileReport(ReportModel):
    filename: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    added_lines: list[AnchoredLine] = Field(default_factory=list)
    comments: list[ReportComment] = Field(default_factory=list)


class SkippedFile(ReportModel):
    filename: str
    status: str = ""
    reason: str = ""


class ReportSummary(ReportModel):
    total_files: int = 0
    locale_files: int = 0
    skipped_files: int = 0
    files_with_comments: int = 0
    total_comments: int = 0

    @classmethod
    def from_files(
        cls,
        files: list[FileReport],
        total_files: int,
        locale_files: int,
        skipped_files: int,
    ) -> "ReportSummary":
        return cls(
            total_files=total_files,
            locale_files=locale_files,
            skipped_files=skipped_files,
            files_with_comments=sum(1 for file in files if file.comments),
            total_comments=sum(len(file.comments) for file in files),
        )


class ReviewReport(ReportModel):
    """Everything needed to post the review later, keyed by PR number."""

    schema_version: Literal[2] = REPORT_SCHEMA_VERSION
    pr_number: int
    pr_title: str = ""
    pr_url: str = ""
    analyzed_at: datetime
    files: list[FileReport] = Field(default_factory=list)
    skipped_files: list[SkippedFile] = Field(default_factory=list)
    overall_comment: str = ""
    summary: ReportSummary = Field(default_factory=ReportSummary)

    def iter_comments(self) -> Iterator[tuple[str, ReportComment]]:
        """Yield (filename, comment) for every comment, in file order."""
        for file in self.files:
            for comment in file.comments:
                yield file.filename, comment


def default_report_path(report_dir: Path, pr_number: int) -> Path:
    return Path(report_dir) / f"{pr_number}.json"


def save_report(report: ReviewReport, path: Path) -> Path:
    """Write the report as JSON, creating the parent directory.

    Args:
        report: Report to write.
        path: Destination file.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    logger.info("Report saved to %s", path)
    return path


def load_report(path: Path) -> ReviewReport:
    """Read a report written by save_report or by an earlier version of the tool.

    Args:
        path: Report file.

    Returns:
        Validated ReviewReport.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or does not match the schema.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict) and "schemaVersion" not in data:
        logger.info("Upgrading untagged report %s", path)
        try:
            data = _upgrade_legacy_report(data)
        except (AttributeError, KeyError, TypeError) as error:
            raise ValueError(f"Unrecognized report format in {path}: {error}") from error
    return ReviewReport.model_validate(data)


def _upgrade_legacy_report(data: dict[str, Any]) -> dict[str, Any]:
    files: list[FileReport] = []
    file_overalls: list[str] = []

    for file in data.get("files", []):
        added_lines = [
            AnchoredLine(
                diff_position=line["diffPosition"],
                new_line=line.get("fileLineNumber"),
                text=line.get("content", ""),
            )
            for line in file.get("changedLines", [])
            if line.get("type", "added") == "added" and isinstance(line.get("diffPosition"), int)
        ]
        new_lines = {line.diff_position: line.new_line for line in added_lines}

        raw_comments = file.get("comments") or [*file.get("issues", []), *file.get("suggestions", [])]
        comments = [
            ReportComment(
                type=comment.get("type", "info"),
                diff_position=comment["diffPosition"],
                new_line=new_lines.get(comment["diffPosition"]),
                message=comment.get("message", ""),
            )
            for comment in raw_comments
            if isinstance(comment.get("diffPosition"), int)
        ]

        if file.get("overall"):
            file_overalls.append(file["overall"])

        files.append(
            FileReport(
                filename=file["filename"],
                status=file.get("status", "modified"),
                additions=file.get("additions", 0),
                deletions=file.get("deletions", 0),
                added_lines=added_lines,
                comments=comments,
            )
        )

    skipped = [
        SkippedFile(filename=item["filename"], status=item.get("status", ""))
        for item in data.get("skippedFiles", [])
    ]
    legacy_summary = data.get("summary", {})
    overall = data.get("overallComment") or "\n\n".join(dict.fromkeys(file_overalls))

    report = ReviewReport(
        pr_number=int(data["prNumber"]),
        pr_title=data.get("prTitle", ""),
        pr_url=data.get("prUrl", ""),
        analyzed_at=data["analyzedAt"],
        files=files,
        skipped_files=skipped,
        overall_comment=overall,
        summary=ReportSummary.from_files(
            files,
            total_files=legacy_summary.get("totalFiles", len(files) + len(skipped)),
            locale_files=legacy_summary.get("i18nFiles", len(files)),
            skipped_files=legacy_summary.get("skippedFiles", len(skipped)),
        ),
    )
    return report.model_dump(by_alias=True)
