"""Settings read from environment variables."""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from i18n_review.ai_reviewer import MODEL_NAME
from i18n_review.diff_parser import DEFAULT_LOCALE_PATTERN
from i18n_review.platform_protocol import AnchorMode
from i18n_review.reference_cache import DEFAULT_TTL_SECONDS

DEFAULT_REFERENCE_PATH = "ghost/i18n/locales/context.json"
DEFAULT_REFERENCE_REF = "main"
SUPPORTED_PLATFORMS = ("github", "gitlab")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""


def _get(environ: Mapping[str, str], key: str, default: str = "") -> str:
    value = environ.get(key)
    return default if value is None or not value.strip() else value.strip()


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    value = _get(environ, key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for one run of the tool."""

    platform: str = "github"
    github_token: str = ""
    repo_name: str = ""
    gitlab_token: str = ""
    gitlab_project_id: int | None = None
    gitlab_url: str = "https://gitlab.com"
    openai_api_key: str = ""
    model: str = MODEL_NAME
    locale_pattern: str = DEFAULT_LOCALE_PATTERN
    reference_path: str = DEFAULT_REFERENCE_PATH
    reference_ref: str = DEFAULT_REFERENCE_REF
    cache_dir: Path = Path("cache")
    cache_ttl_seconds: int = DEFAULT_TTL_SECONDS
    report_dir: Path = Path("ai_validations")
    anchor_mode: AnchorMode = AnchorMode.LINE
    log_level: str = "INFO"

    @property
    def reference_cache_file(self) -> Path:
        return self.cache_dir / Path(self.reference_path).name

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Settings instance.

        Raises:
            ConfigurationError: If a value is present but invalid.
        """
        env = os.environ if environ is None else environ

        platform = _get(env, "I18N_REVIEW_PLATFORM", "github").lower()
        if platform not in SUPPORTED_PLATFORMS:
            raise ConfigurationError(
                f"I18N_REVIEW_PLATFORM must be one of {', '.join(SUPPORTED_PLATFORMS)}, got {platform!r}"
            )

        repo_name = _get(env, "GITHUB_REPOSITORY")
        owner, repo = _get(env, "GITHUB_OWNER"), _get(env, "GITHUB_REPO")
        if not repo_name and owner and repo:
            repo_name = f"{owner}/{repo}"

        anchor_value = _get(env, "I18N_REVIEW_ANCHOR_MODE", AnchorMode.LINE.value).lower()
        try:
            anchor_mode = AnchorMode(anchor_value)
        except ValueError:
            raise ConfigurationError(
                f"I18N_REVIEW_ANCHOR_MODE must be 'line' or 'position', got {anchor_value!r}"
            ) from None

        locale_pattern = _get(env, "I18N_REVIEW_LOCALE_PATTERN", DEFAULT_LOCALE_PATTERN)
        try:
            re.compile(locale_pattern)
        except re.error as error:
            raise ConfigurationError(f"I18N_REVIEW_LOCALE_PATTERN is not a valid regex: {error}") from None

        project_id = _get(env, "CI_PROJECT_ID")

        return cls(
            platform=platform,
            github_token=_get(env, "GITHUB_TOKEN"),
            repo_name=repo_name,
            gitlab_token=_get(env, "GITLAB_TOKEN"),
            gitlab_project_id=_get_int(env, "CI_PROJECT_ID", 0) if project_id else None,
            gitlab_url=_get(env, "CI_SERVER_URL", "https://gitlab.com"),
            openai_api_key=_get(env, "OPENAI_API_KEY"),
            model=_get(env, "I18N_REVIEW_MODEL", MODEL_NAME),
            locale_pattern=locale_pattern,
            reference_path=_get(env, "I18N_REVIEW_REFERENCE_PATH", DEFAULT_REFERENCE_PATH),
            reference_ref=_get(env, "I18N_REVIEW_REFERENCE_REF", DEFAULT_REFERENCE_REF),
            cache_dir=Path(_get(env, "I18N_REVIEW_CACHE_DIR", "cache")),
            cache_ttl_seconds=_get_int(env, "I18N_REVIEW_CACHE_TTL", DEFAULT_TTL_SECONDS),
            report_dir=Path(_get(env, "I18N_REVIEW_REPORT_DIR", "ai_validations")),
            anchor_mode=anchor_mode,
            log_level=_get(env, "LOG_LEVEL", "INFO").upper(),
        )
