"""AI translation reviewer using OpenAI with structured output."""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Literal

from openai import AuthenticationError, BadRequestError, OpenAI, RateLimitError
from pydantic import BaseModel, ConfigDict, ValidationError

from i18n_review.diff_parser import AddedLine

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
MAX_CONTENT_LENGTH = 50_000
MAX_RETRIES = 3
MODEL_NAME = "gpt-4.1"
TEMPERATURE = 0.2
NO_CHANGES_OVERALL = "No added translations to analyze."


class TranslationComment(BaseModel):
    """A single review comment anchored to an added line by diff position."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["error", "warning", "info", "suggestion"]
    filename: str
    diff_position: int
    message: str


class TranslationReview(BaseModel):
    """Structured response from the AI reviewer."""

    model_config = ConfigDict(extra="forbid")

    comments: list[TranslationComment]
    overall: str


@dataclass
class LocaleFileChanges:
    """What the model sees for one locale file."""

    filename: str
    added_lines: list[AddedLine] = field(default_factory=list)
    current_content: str | None = None


class AIReviewer:
    """Translation reviewer powered by OpenAI with structured output.

    All locale files of a PR are reviewed in a single call so the model can
    spot inconsistencies across files.
    """

    def __init__(self, api_key: str, model: str = MODEL_NAME) -> None:
        """Initialize the AI reviewer.

        Args:
            api_key: OpenAI API key. Use "mock" (or empty) for mock mode.
            model: Chat completion model name.
        """
        self._model = model
        self._is_mock = api_key == "mock" or not api_key
        if not self._is_mock:
            self._client: OpenAI = OpenAI(api_key=api_key)
        else:
            self._client: OpenAI = None  # type: ignore[assignment]

    def review_translations(
        self,
        files: list[LocaleFileChanges],
        pr_title: str,
        reference_context: str | None = None,
    ) -> TranslationReview:
        """Review the added lines of all locale files in one model call.

        Comments are returned as the model produced them; callers must drop
        comments whose anchor is not one of the added lines.

        Args:
            files: Locale files with their added lines and current content.
            pr_title: Pull request title for context.
            reference_context: Reference document describing where strings are used.

        Returns:
            TranslationReview with comments and an overall remark.

        Raises:
            AuthenticationError: If the API key is invalid.
        """
        files_with_changes = [file for file in files if file.added_lines]
        if not files_with_changes:
            return TranslationReview(comments=[], overall=NO_CHANGES_OVERALL)

        if self._is_mock:
            return self._mock_response(files_with_changes)

        system_prompt = self._build_system_prompt(files_with_changes)
        user_prompt = self._build_user_prompt(files_with_changes, pr_title, reference_context)
        return self._call_openai(system_prompt, user_prompt)

    def _build_system_prompt(self, files: list[LocaleFileChanges]) -> str:
        """Build the directions, including the list of valid anchors.

        Args:
            files: Locale files that have added lines.

        Returns:
            System prompt string.
        """
        valid_positions = ", ".join(
            f"{line.filename}: {line.diff_position}" for file in files for line in file.added_lines
        )
        return (
            "You are reviewing i18n (internationalization) changes in a pull request. "
            "The translations are usually written by a native speaker of the target language.\n\n"
            "Focus on:\n"
            "1. Attempts to deface the product\n"
            "2. Typos and grammar errors\n"
            "3. Inaccurate or inappropriate translations\n"
            "4. Punctuation that differs from the English source\n"
            "5. Variables inside {} that were translated, added or removed\n\n"
            "Word feedback politely and ask questions where something might be an error. "
            "Only comment when a comment is specific and actionable. Do not offer compliments.\n\n"
            "Use 'overall' only for patterns affecting several lines, such as inconsistent "
            "formality. Leave it empty otherwise and do not repeat line comments there.\n\n"
            "For each comment, give the filename and the exact diff_position of the added line "
            "it refers to. Only comment on added lines. Do not guess positions and do not put "
            "positions or line numbers in the message.\n\n"
            f"The valid diff_position values are: {valid_positions}"
        )

    def _build_user_prompt(
        self,
        files: list[LocaleFileChanges],
        pr_title: str,
        reference_context: str | None,
    ) -> str:
        """Build the user prompt with every file's content and added lines.

        Args:
            files: Locale files that have added lines.
            pr_title: Pull request title.
            reference_context: Reference document text, or None.

        Returns:
            Formatted user prompt string.
        """
        sections = []
        for index, file in enumerate(files, start=1):
            added = "\n".join(
                f"{line_index}. [ADDED] diff_position {line.diff_position}: {line.text}"
                for line_index, line in enumerate(file.added_lines, start=1)
            )
            current = self._truncate(file.current_content) or "Not available"
            sections.append(
                f"File {index}: {file.filename}\n"
                f"Current file content (for context):\n{current}\n\n"
                f"Added lines (translations to analyze):\n{added}"
            )

        files_content = "\n\n".join(sections)
        return (
            f"PR Title: {self._sanitize_title(pr_title)}\n\n"
            f"Reference context file:\n{self._truncate(reference_context) or 'Not available'}\n\n"
            f"Files and changes in this PR:\n{files_content}"
        )

    def _sanitize_title(self, text: str) -> str:
        """Strip markdown formatting and truncate to max length.

        Args:
            text: Raw title.

        Returns:
            Sanitized text with markdown removed and length capped.
        """
        if not text:
            return ""

        sanitized = re.sub(r"!\[([^\]]*)\]\([^)]*\)", r"\1", text)
        sanitized = re.sub(r"\*{1,3}(.*?)\*{1,3}", r"\1", sanitized)
        sanitized = re.sub(r"\[([^\]]*)\]\([^)]*\)", r"\1", sanitized)
        sanitized = re.sub(r"`{1,3}", "", sanitized)
        return sanitized[:MAX_TITLE_LENGTH]

    def _truncate(self, text: str | None) -> str:
        if not text:
            return ""
        if len(text) > MAX_CONTENT_LENGTH:
            logger.warning("Truncating prompt content from %d characters", len(text))
            return text[:MAX_CONTENT_LENGTH]
        return text

    def _call_openai(self, system_prompt: str, user_prompt: str) -> TranslationReview:
        """Call OpenAI API with structured output and error handling.

        Args:
            system_prompt: System prompt for the model.
            user_prompt: User prompt with the changes to review.

        Returns:
            Parsed TranslationReview from the model.

        Raises:
            AuthenticationError: If the API key is invalid.
        """
        for attempt in range(MAX_RETRIES):
            try:
                response = self._client.chat.completions.create(
                    model=self._model,
                    temperature=TEMPERATURE,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    response_format={
                        "type": "json_schema",
                        "json_schema": {
                            "name": "translation_review",
                            "strict": True,
                            "schema": TranslationReview.model_json_schema(),
                        },
                    },
                )

                choice = response.choices[0]

                if choice.message.refusal:
                    logger.warning("Model refused request: %s", choice.message.refusal)
                    return TranslationReview(comments=[], overall="")

                if choice.finish_reason == "length":
                    logger.warning("Response truncated due to token limit")
                    return TranslationReview(
                        comments=[],
                        overall="Error: Response truncated due to token limit.",
                    )

                raw_content = choice.message.content or ""
                return TranslationReview.model_validate(json.loads(raw_content))

            except AuthenticationError:
                raise

            except BadRequestError as error:
                logger.warning("Request rejected by the API: %s", error)
                return TranslationReview(
                    comments=[],
                    overall="Error: Content was filtered by the API.",
                )

            except (json.JSONDecodeError, ValidationError) as error:
                logger.warning("Could not parse model response: %s", error)
                return TranslationReview(comments=[], overall="Error: AI analysis failed.")

            except RateLimitError:
                if attempt < MAX_RETRIES - 1:
                    wait_time = 2 ** (attempt + 1)
                    logger.info(
                        "Rate limited. Retrying in %d seconds (attempt %d/%d)",
                        wait_time,
                        attempt + 1,
                        MAX_RETRIES,
                    )
                    time.sleep(wait_time)

        logger.error("Max retries exceeded for rate limit errors")
        return TranslationReview(
            comments=[],
            overall=f"Error: Rate limit exceeded after {MAX_RETRIES} retries.",
        )

    def _mock_response(self, files: list[LocaleFileChanges]) -> TranslationReview:
        """Return a canned review on the first added line, without API access.

        Args:
            files: Locale files that have added lines.

        Returns:
            Static TranslationReview with one comment.
        """
        first_line = files[0].added_lines[0]
        return TranslationReview(
            comments=[
                TranslationComment(
                    type="info",
                    filename=first_line.filename,
                    diff_position=first_line.diff_position,
                    message="Mock review comment for testing.",
                )
            ],
            overall="Mock review completed.",
        )
