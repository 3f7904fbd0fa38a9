"""Tests for config module."""

from pathlib import Path

import pytest

from i18n_review.config import ConfigurationError, Settings
from i18n_review.platform_protocol import AnchorMode


class TestDefaults:
    def test_empty_environment_uses_defaults(self):
        settings = Settings.from_env({})

        assert settings.platform == "github"
        assert settings.model == "gpt-4.1"
        assert settings.locale_pattern == r"^ghost/i18n/locales/.*\.json$"
        assert settings.reference_path == "ghost/i18n/locales/context.json"
        assert settings.reference_ref == "main"
        assert settings.cache_ttl_seconds == 86400
        assert settings.report_dir == Path("ai_validations")
        assert settings.anchor_mode is AnchorMode.LINE
        assert settings.gitlab_project_id is None
        assert settings.log_level == "INFO"

    def test_reference_cache_file_is_in_cache_dir(self):
        settings = Settings.from_env({"I18N_REVIEW_CACHE_DIR": "/tmp/i18n"})

        assert settings.reference_cache_file == Path("/tmp/i18n/context.json")


class TestFromEnv:
    def test_repository_from_github_repository(self):
        settings = Settings.from_env({"GITHUB_REPOSITORY": "TryGhost/Ghost", "GITHUB_OWNER": "x", "GITHUB_REPO": "y"})

        assert settings.repo_name == "TryGhost/Ghost"

    def test_repository_from_owner_and_repo(self):
        settings = Settings.from_env({"GITHUB_OWNER": "TryGhost", "GITHUB_REPO": "Ghost"})

        assert settings.repo_name == "TryGhost/Ghost"

    def test_gitlab_settings(self):
        settings = Settings.from_env(
            {
                "I18N_REVIEW_PLATFORM": "GitLab",
                "GITLAB_TOKEN": "glpat-test",
                "CI_PROJECT_ID": "12345",
                "CI_SERVER_URL": "https://gitlab.example.com",
            }
        )

        assert settings.platform == "gitlab"
        assert settings.gitlab_project_id == 12345
        assert settings.gitlab_url == "https://gitlab.example.com"

    def test_values_are_stripped_and_blank_means_unset(self):
        settings = Settings.from_env({"OPENAI_API_KEY": "  sk-test  ", "I18N_REVIEW_MODEL": "   "})

        assert settings.openai_api_key == "sk-test"
        assert settings.model == "gpt-4.1"

    def test_position_anchor_mode(self):
        settings = Settings.from_env({"I18N_REVIEW_ANCHOR_MODE": "POSITION"})

        assert settings.anchor_mode is AnchorMode.POSITION

    def test_log_level_is_uppercased(self):
        assert Settings.from_env({"LOG_LEVEL": "debug"}).log_level == "DEBUG"


class TestInvalidValues:
    @pytest.mark.parametrize(
        ("environ", "message"),
        [
            ({"I18N_REVIEW_PLATFORM": "bitbucket"}, "I18N_REVIEW_PLATFORM"),
            ({"I18N_REVIEW_ANCHOR_MODE": "hunk"}, "I18N_REVIEW_ANCHOR_MODE"),
            ({"I18N_REVIEW_LOCALE_PATTERN": "(unclosed"}, "I18N_REVIEW_LOCALE_PATTERN"),
            ({"I18N_REVIEW_CACHE_TTL": "a day"}, "I18N_REVIEW_CACHE_TTL"),
            ({"CI_PROJECT_ID": "group/project"}, "CI_PROJECT_ID"),
        ],
    )
    def test_invalid_value_raises(self, environ: dict, message: str):
        with pytest.raises(ConfigurationError, match=message):
            Settings.from_env(environ)
