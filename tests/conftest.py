"""Shared test fixtures for i18n-review."""

import pytest

from i18n_review.config import Settings
from i18n_review.platform_protocol import PlatformContext, PlatformFile

LOCALE_FILE = "ghost/i18n/locales/de/portal.json"
SECOND_LOCALE_FILE = "ghost/i18n/locales/fr/portal.json"


@pytest.fixture
def sample_single_hunk_patch() -> str:
    """Single hunk: one context, one deletion, two additions, one context."""
    return (
        "@@ -10,3 +10,4 @@\n"
        '     "Back": "Zurück",\n'
        '-    "Cancel": "Abbrechen",\n'
        '+    "Cancel": "Abbruch",\n'
        '+    "Close": "Schliessen",\n'
        '     "Continue": "Weiter",'
    )


@pytest.fixture
def sample_multi_hunk_patch() -> str:
    """Two hunks; the second starts far below the first."""
    return (
        "@@ -1,3 +1,3 @@\n"
        " {\n"
        '-    "Name": "Name",\n'
        '+    "Name": "Vorname",\n'
        '     "Email": "E-Mail",\n'
        "@@ -10,2 +11,4 @@\n"
        '     "Save": "Speichern",\n'
        '+    "Saved": "Gespeichert",\n'
        '+    "Saving": "Speichere",\n'
        '     "Send": "Senden",'
    )


@pytest.fixture
def sample_multi_file_diff() -> str:
    """Two locale files in a git-style diff."""
    return (
        f"diff --git a/{LOCALE_FILE} b/{LOCALE_FILE}\n"
        "index 1111111..2222222 100644\n"
        f"--- a/{LOCALE_FILE}\n"
        f"+++ b/{LOCALE_FILE}\n"
        "@@ -1,2 +1,3 @@\n"
        " {\n"
        '+    "Hello": "Hallo",\n'
        '     "Bye": "Tschüss"\n'
        f"diff --git a/{SECOND_LOCALE_FILE} b/{SECOND_LOCALE_FILE}\n"
        "index 3333333..4444444 100644\n"
        f"--- a/{SECOND_LOCALE_FILE}\n"
        f"+++ b/{SECOND_LOCALE_FILE}\n"
        "@@ -4,2 +4,2 @@\n"
        '-    "Hello": "Salut",\n'
        '+    "Hello": "Bonjour",\n'
        '     "Bye": "Au revoir"\n'
    )


@pytest.fixture
def sample_platform_files(sample_single_hunk_patch: str) -> list[PlatformFile]:
    """Mixed PR files: two locale files, one source file, one binary locale file."""
    return [
        PlatformFile(
            filename=LOCALE_FILE,
            status="modified",
            patch=sample_single_hunk_patch,
            additions=2,
            deletions=1,
        ),
        PlatformFile(
            filename="apps/portal/src/App.js",
            status="modified",
            patch="@@ -1,2 +1,3 @@\n ctx\n+new",
            additions=1,
            deletions=0,
        ),
        PlatformFile(
            filename=SECOND_LOCALE_FILE,
            status="added",
            patch='@@ -0,0 +1,3 @@\n+{\n+    "Close": "Fermer"\n+}',
            additions=3,
            deletions=0,
        ),
        PlatformFile(
            filename="ghost/i18n/locales/ja/portal.json",
            status="renamed",
            patch=None,
            additions=0,
            deletions=0,
        ),
    ]


@pytest.fixture
def sample_context() -> PlatformContext:
    return PlatformContext(
        number=42,
        title="Update German and French translations",
        url="https://github.com/TryGhost/Ghost/pull/42",
        head_sha="abc123def456",
        repo_identifier="TryGhost/Ghost",
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings writing cache and reports under tmp_path."""
    return Settings(
        github_token="ghp_test",
        repo_name="TryGhost/Ghost",
        openai_api_key="mock",
        cache_dir=tmp_path / "cache",
        report_dir=tmp_path / "reports",
    )
