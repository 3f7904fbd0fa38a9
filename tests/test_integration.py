"""End-to-end tests: PR files -> OpenAI -> report -> pending review."""

import json
import os
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import github
import pytest

from i18n_review.report import load_report
from i18n_review.review import main

from conftest import LOCALE_FILE

SAMPLE_PATCH = (
    "@@ -1,4 +1,5 @@\n"
    " {\n"
    '     "Back": "Zurück",\n'
    '+    "Close": "Schliessen",\n'
    '+    "Continue": "Weiter",\n'
    " }\n"
    "@@ -40,2 +41,3 @@\n"
    '     "Save": "Speichern",\n'
    '+    "Send": "Senden"\n'
    " }"
)

AI_RESPONSE = {
    "comments": [
        {
            "type": "warning",
            "filename": LOCALE_FILE,
            "diff_position": 3,
            "message": "Did you mean 'Schließen'?",
        },
        {
            "type": "info",
            "filename": LOCALE_FILE,
            "diff_position": 6,
            "message": "Position of a context line, should be dropped.",
        },
        {
            "type": "suggestion",
            "filename": LOCALE_FILE,
            "diff_position": 7,
            "message": "Consider 'Abschicken'.",
        },
    ],
    "overall": "",
}


def _openai_response(content: dict) -> SimpleNamespace:
    message = SimpleNamespace(content=json.dumps(content), refusal=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")])


@pytest.fixture
def env(tmp_path) -> dict[str, str]:
    return {
        "GITHUB_TOKEN": "ghp_test",
        "GITHUB_REPOSITORY": "TryGhost/Ghost",
        "OPENAI_API_KEY": "sk-test",
        "I18N_REVIEW_CACHE_DIR": str(tmp_path / "cache"),
        "I18N_REVIEW_REPORT_DIR": str(tmp_path / "reports"),
    }


class TestGithubEndToEnd:
    """Full GitHub pipeline with line anchors."""

    @patch("i18n_review.github_client.Github")
    @patch("i18n_review.ai_reviewer.OpenAI")
    def test_review_creates_pending_review(self, mock_openai_cls, mock_github_cls, env, tmp_path):
        mock_repo = MagicMock()
        mock_pr = MagicMock()
        mock_github_cls.return_value.get_repo.return_value = mock_repo
        mock_repo.get_pull.return_value = mock_pr
        mock_repo.get_contents.side_effect = github.UnknownObjectException(404, {}, {})

        mock_pr.number = 42
        mock_pr.title = "Update German translations"
        mock_pr.html_url = "https://github.com/TryGhost/Ghost/pull/42"
        mock_pr.head.sha = "abc123"
        mock_file = MagicMock()
        mock_file.filename = LOCALE_FILE
        mock_file.status = "modified"
        mock_file.patch = SAMPLE_PATCH
        mock_file.additions = 3
        mock_file.deletions = 0
        mock_pr.get_files.return_value = [mock_file]
        mock_pr.get_reviews.return_value = []
        last_commit = MagicMock()
        mock_pr.get_commits.return_value = [last_commit]

        mock_openai_cls.return_value.chat.completions.create.return_value = _openai_response(AI_RESPONSE)

        with patch.dict(os.environ, env, clear=True):
            exit_code = main(["review", "42"])

        assert exit_code == 0

        kwargs = mock_pr.create_review.call_args.kwargs
        assert kwargs["commit"] is last_commit
        assert "event" not in kwargs
        assert kwargs["comments"] == [
            {"path": LOCALE_FILE, "line": 3, "side": "RIGHT", "body": "Did you mean 'Schließen'?"},
            {"path": LOCALE_FILE, "line": 42, "side": "RIGHT", "body": "Consider 'Abschicken'."},
        ]
        assert kwargs["body"].startswith("📋 My AI helper left you a few comments.")

        report = load_report(tmp_path / "reports" / "42.json")
        assert [(line.diff_position, line.new_line) for line in report.files[0].added_lines] == [
            (3, 3),
            (4, 4),
            (7, 42),
        ]

    @patch("i18n_review.github_client.Github")
    def test_post_from_legacy_report(self, mock_github_cls, env, tmp_path):
        mock_pr = mock_github_cls.return_value.get_repo.return_value.get_pull.return_value
        mock_pr.get_reviews.return_value = []
        mock_pr.get_commits.return_value = [MagicMock()]
        legacy = {
            "prNumber": 42,
            "analyzedAt": "2024-05-01T08:00:00Z",
            "files": [
                {
                    "filename": LOCALE_FILE,
                    "changedLines": [{"type": "added", "diffPosition": 3, "fileLineNumber": 3, "content": "x"}],
                    "issues": [{"type": "error", "diffPosition": 3, "message": "Variable removed"}],
                    "suggestions": [],
                    "overall": "Check the variables.",
                }
            ],
        }
        report_path = tmp_path / "legacy.json"
        report_path.write_text(json.dumps(legacy), encoding="utf-8")

        with patch.dict(os.environ, env, clear=True):
            assert main(["post", "42", "--report", str(report_path)]) == 0

        kwargs = mock_pr.create_review.call_args.kwargs
        assert kwargs["comments"] == [
            {"path": LOCALE_FILE, "line": 3, "side": "RIGHT", "body": "Variable removed"}
        ]
        assert kwargs["body"].startswith("📋 Check the variables.")


class TestGitlabEndToEnd:
    """Full GitLab pipeline with draft notes."""

    @patch("i18n_review.gitlab_client.gitlab.Gitlab")
    def test_review_creates_draft_notes(self, mock_gitlab_cls, env):
        mock_mr = MagicMock()
        mock_mr.iid = 7
        mock_mr.title = "Update German translations"
        mock_mr.web_url = "https://gitlab.example.com/ghost/-/merge_requests/7"
        mock_mr.sha = "head_sha"
        mock_mr.diff_refs = {"base_sha": "b", "start_sha": "s", "head_sha": "h"}
        mock_mr.changes.return_value = {"changes": [{"new_path": LOCALE_FILE, "diff": SAMPLE_PATCH}]}
        mock_project = mock_gitlab_cls.return_value.projects.get.return_value
        mock_project.mergerequests.get.return_value = mock_mr
        mock_project.files.get.return_value.decode.return_value = b"{}"

        gitlab_env = {
            "I18N_REVIEW_PLATFORM": "gitlab",
            "GITLAB_TOKEN": "glpat-test",
            "CI_PROJECT_ID": "12345",
            "OPENAI_API_KEY": "mock",
            "I18N_REVIEW_CACHE_DIR": env["I18N_REVIEW_CACHE_DIR"],
            "I18N_REVIEW_REPORT_DIR": env["I18N_REVIEW_REPORT_DIR"],
        }
        with patch.dict(os.environ, gitlab_env, clear=True):
            assert main(["review", "7"]) == 0

        positioned, body_note = mock_mr.draft_notes.create.call_args_list
        assert positioned.args[0]["position"]["new_line"] == 3
        assert positioned.args[0]["note"] == "Mock review comment for testing."
        assert body_note.args[0]["note"].startswith("📋 ")
