"""Unified diff parser with diff-position and line mapping for review comments.

Every line of a file's patch body that is added, deleted or context consumes one
diff position. Hunk headers and metadata lines (file headers, ``index`` lines,
``\\ No newline at end of file``) do not.
"""

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum

from i18n_review.platform_protocol import PlatformFile

logger = logging.getLogger(__name__)

HUNK_HEADER_PATTERN = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")

FILE_SEPARATOR = "diff --git "

METADATA_PREFIXES = (
    "diff --git",
    "index ",
    "---",
    "+++",
    "From ",
    "Date: ",
    "Subject: ",
)

DEFAULT_LOCALE_PATTERN = r"^ghost/i18n/locales/.*\.json$"


class PatchError(Exception):
    """Base class for errors raised while parsing a patch."""


class MalformedHunkHeader(PatchError, ValueError):
    """Raised when an ``@@`` line does not match the hunk header grammar."""

    def __init__(self, line: str, filename: str = "") -> None:
        self.line = line
        self.filename = filename
        location = f" in {filename}" if filename else ""
        super().__init__(f"Malformed hunk header{location}: {line!r}")


class EmptyPatch(PatchError):
    """Raised when a file has no patch text (binary, rename-only or too large)."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"No patch text for {filename}")


class AnchorNotFound(PatchError, KeyError):
    """Raised when an anchor does not match any added line."""

    def __init__(self, filename: str, diff_position: int) -> None:
        self.filename = filename
        self.diff_position = diff_position
        super().__init__(f"No added line at {filename}:{diff_position}")

    def __str__(self) -> str:
        return str(self.args[0])


class LineKind(str, Enum):
    """Classification of a physical patch line."""

    ADDED = "added"
    DELETED = "deleted"
    CONTEXT = "context"
    METADATA = "metadata"


@dataclass(frozen=True)
class HunkHeader:
    """Numbers parsed from an ``@@ -a,b +c,d @@`` line."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str = ""


@dataclass(frozen=True)
class PatchLine:
    """A single content line from a file's patch.

    Attributes:
        kind: ADDED, DELETED or CONTEXT.
        text: Line content without the diff marker.
        diff_position: 1-based ordinal of the line within the file's patch body.
        new_line: Line number in the NEW file. None for deleted lines.
        old_line: Line number in the OLD file. None for added lines.
        hunk_index: 0-based index of the hunk holding the line.
    """

    kind: LineKind
    text: str
    diff_position: int
    new_line: int | None = None
    old_line: int | None = None
    hunk_index: int = 0


@dataclass(frozen=True)
class Hunk:
    """One ``@@`` block and the lines that follow it."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str = ""
    lines: tuple[PatchLine, ...] = ()


@dataclass(frozen=True)
class AddedLine:
    """An added line with both anchor forms a review comment can use."""

    filename: str
    diff_position: int
    new_line: int
    text: str
    hunk_index: int = 0

    @property
    def review_position(self) -> int:
        """GitHub's legacy ``position``, which also counts every hunk header after the first."""
        return self.diff_position + self.hunk_index


@dataclass(frozen=True)
class FilePatch:
    """Parsed patch for one file."""

    filename: str
    hunks: tuple[Hunk, ...] = ()

    @property
    def lines(self) -> tuple[PatchLine, ...]:
        """All content lines across hunks, in document order."""
        return tuple(line for hunk in self.hunks for line in hunk.lines)

    @property
    def added_lines(self) -> list[AddedLine]:
        """Added lines only, the lines eligible to host a comment."""
        return [
            AddedLine(
                filename=self.filename,
                diff_position=line.diff_position,
                new_line=line.new_line,
                text=line.text,
                hunk_index=line.hunk_index,
            )
            for line in self.lines
            if line.kind is LineKind.ADDED
        ]


@dataclass(frozen=True)
class ParseFailure:
    """A file that could not be parsed, kept for reporting."""

    filename: str
    reason: str


@dataclass(frozen=True)
class PatchSet:
    """Result of a lenient batch parse."""

    files: tuple[FilePatch, ...] = ()
    failures: tuple[ParseFailure, ...] = ()

    @property
    def added_lines(self) -> list[AddedLine]:
        return added_lines(self.files)


def parse_hunk_header(line: str) -> HunkHeader:
    """Parse a hunk header line.

    Counts default to 1 when omitted (``@@ -5 +5 @@``). Text after the closing
    ``@@`` is kept as ``section``.

    Args:
        line: A line believed to be a hunk header.

    Returns:
        HunkHeader with the parsed numbers.

    Raises:
        MalformedHunkHeader: If the line does not match the grammar.
    """
    match = HUNK_HEADER_PATTERN.match(line)
    if not match:
        raise MalformedHunkHeader(line)

    old_start, old_count, new_start, new_count, section = match.groups()
    return HunkHeader(
        old_start=int(old_start),
        old_count=int(old_count) if old_count is not None else 1,
        new_start=int(new_start),
        new_count=int(new_count) if new_count is not None else 1,
        section=section.strip(),
    )


def classify_line(raw_line: str) -> tuple[LineKind, str]:
    """Classify one physical line of a patch body.

    Metadata prefixes are checked first, so ``+++``/``---`` are never content.
    An empty line is an unchanged blank line. Unrecognized lines are metadata.

    Args:
        raw_line: Line from the patch, without its trailing newline.

    Returns:
        Tuple of (kind, text). Text has the diff marker stripped for content lines.
    """
    if raw_line.startswith(METADATA_PREFIXES):
        return LineKind.METADATA, raw_line
    if not raw_line:
        return LineKind.CONTEXT, ""

    prefix = raw_line[0]
    if prefix == "+":
        return LineKind.ADDED, raw_line[1:]
    if prefix == "-":
        return LineKind.DELETED, raw_line[1:]
    if prefix == " ":
        return LineKind.CONTEXT, raw_line[1:]
    return LineKind.METADATA, raw_line


class _PatchAccumulator:
    """Single-pass state that turns patch lines into FilePatch records.

    A hunk closes once the old and new line counts from its header have been
    read. Lines after that and before the next ``@@`` are outside any hunk:
    they can name the file (``+++``) or, when splitting, start the next file
    (``--- ``), and are otherwise ignored.

    When ``failures`` is given, a malformed hunk header drops the current file,
    records a ParseFailure and skips to the next ``diff --git`` line. Otherwise
    the error propagates.
    """

    def __init__(
        self,
        filename: str = "",
        split_files: bool = True,
        keep_empty: bool = False,
        failures: list[ParseFailure] | None = None,
    ) -> None:
        self._split_files = split_files
        self._failures = failures
        self._files: list[FilePatch] = []
        self._open_file(filename, keep_empty=keep_empty, filename_fixed=bool(filename))

    def _open_file(self, filename: str, keep_empty: bool, filename_fixed: bool) -> None:
        self._filename = filename
        self._filename_fixed = filename_fixed
        self._keep_empty = keep_empty
        self._skipping = False
        self._hunks: list[Hunk] = []
        self._header: HunkHeader | None = None
        self._hunk_lines: list[PatchLine] = []
        self._hunk_index = -1
        self._diff_position = 0
        self._new_line = 0
        self._old_line = 0
        self._old_remaining = 0
        self._new_remaining = 0

    def _close_hunk(self) -> None:
        if self._header is None:
            return
        header = self._header
        self._header = None
        self._hunks.append(
            Hunk(
                old_start=header.old_start,
                old_count=header.old_count,
                new_start=header.new_start,
                new_count=header.new_count,
                section=header.section,
                lines=tuple(self._hunk_lines),
            )
        )
        self._hunk_lines = []

    def _close_file(self) -> None:
        if self._skipping:
            return
        self._close_hunk()
        if self._hunks or self._keep_empty:
            self._files.append(FilePatch(filename=self._filename, hunks=tuple(self._hunks)))

    def _read_file_header(self, raw_line: str) -> None:
        if self._filename_fixed or not raw_line.startswith("+++ "):
            return
        path = raw_line[4:].split("\t", 1)[0].strip()
        if path == "/dev/null":
            return
        self._filename = path[2:] if path.startswith("b/") else path

    def _start_hunk(self, raw_line: str) -> None:
        try:
            header = parse_hunk_header(raw_line)
        except MalformedHunkHeader as error:
            if self._failures is None:
                raise MalformedHunkHeader(raw_line, filename=self._filename) from error
            logger.warning("Skipping %s: malformed hunk header %r", self._filename, raw_line)
            self._failures.append(ParseFailure(self._filename, str(error)))
            self._skipping = True
            return

        self._close_hunk()
        self._header = header
        self._hunk_index += 1
        self._new_line = header.new_start - 1
        self._old_line = header.old_start - 1
        self._old_remaining = header.old_count
        self._new_remaining = header.new_count

    def _starts_unseparated_file(self, raw_line: str) -> bool:
        # Plain ``diff -u`` output has no ``diff --git`` line between files.
        return self._split_files and bool(self._hunks) and raw_line.startswith("--- ")

    def feed(self, raw_line: str) -> None:
        if self._split_files and raw_line.startswith(FILE_SEPARATOR):
            self._close_file()
            self._open_file(_filename_from_separator(raw_line), keep_empty=True, filename_fixed=False)
            return

        if self._skipping:
            return

        if raw_line.startswith("@@"):
            self._start_hunk(raw_line)
            return

        if self._header is None:
            if self._starts_unseparated_file(raw_line):
                self._close_file()
                self._open_file("", keep_empty=False, filename_fixed=False)
            self._read_file_header(raw_line)
            return

        kind, text = classify_line(raw_line)
        if kind is LineKind.METADATA:
            return

        self._diff_position += 1
        new_line = old_line = None
        if kind is not LineKind.DELETED:
            self._new_line += 1
            self._new_remaining -= 1
            new_line = self._new_line
        if kind is not LineKind.ADDED:
            self._old_line += 1
            self._old_remaining -= 1
            old_line = self._old_line

        self._hunk_lines.append(
            PatchLine(
                kind=kind,
                text=text,
                diff_position=self._diff_position,
                new_line=new_line,
                old_line=old_line,
                hunk_index=self._hunk_index,
            )
        )

        if self._old_remaining <= 0 and self._new_remaining <= 0:
            self._close_hunk()

    def finish(self) -> list[FilePatch]:
        self._close_file()
        return self._files


def _split_lines(text: str) -> list[str]:
    """Split on newlines; a single trailing newline does not add a blank line."""
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _filename_from_separator(raw_line: str) -> str:
    paths = raw_line[len(FILE_SEPARATOR):]
    if " b/" in paths:
        return paths.rsplit(" b/", 1)[1]
    return paths.rsplit(" ", 1)[-1]


def parse_patch(text: str) -> list[FilePatch]:
    """Parse a (possibly multi-file) unified diff.

    Each ``diff --git`` line starts a new file and resets all counters. Without
    such lines (plain ``diff -u`` output) a ``--- `` header after a completed
    hunk starts the next file. Lines before the first separator form an
    implicit file that is kept only when it has hunks, so an empty string
    yields an empty list.

    Text after a hunk's declared line counts are used up, such as a
    format-patch ``-- `` signature, is not part of the hunk.

    Args:
        text: Unified diff text.

    Returns:
        List of FilePatch in document order.

    Raises:
        MalformedHunkHeader: On the first malformed hunk header.
    """
    accumulator = _PatchAccumulator()
    for raw_line in _split_lines(text):
        accumulator.feed(raw_line)
    return accumulator.finish()


def parse_patch_set(text: str) -> PatchSet:
    """Parse a multi-file diff, skipping files with malformed hunk headers."""
    failures: list[ParseFailure] = []
    accumulator = _PatchAccumulator(failures=failures)
    for raw_line in _split_lines(text):
        accumulator.feed(raw_line)
    return PatchSet(files=tuple(accumulator.finish()), failures=tuple(failures))


def parse_file_patch(filename: str, patch: str | None) -> FilePatch:
    """Parse the patch text of a single file, as served by a PR file list.

    Args:
        filename: Path of the file in the new tree.
        patch: The file's patch text. None or blank for binary/renamed files.

    Returns:
        FilePatch for the file (possibly with no hunks).

    Raises:
        EmptyPatch: If there is no patch text.
        MalformedHunkHeader: If a hunk header is malformed.
    """
    if patch is None or not patch.strip():
        raise EmptyPatch(filename)

    accumulator = _PatchAccumulator(filename=filename, split_files=False, keep_empty=True)
    for raw_line in _split_lines(patch):
        accumulator.feed(raw_line)
    return accumulator.finish()[0]


def parse_file_patches(patches: Mapping[str, str | None]) -> PatchSet:
    """Parse per-file patches, collecting failures instead of raising.

    Args:
        patches: Mapping of filename to patch text, in PR order.

    Returns:
        PatchSet with parsed files and per-file failures.
    """
    files: list[FilePatch] = []
    failures: list[ParseFailure] = []

    for filename, patch in patches.items():
        try:
            files.append(parse_file_patch(filename, patch))
        except EmptyPatch as error:
            logger.warning("Skipping %s: no patch text", filename)
            failures.append(ParseFailure(filename, str(error)))
        except MalformedHunkHeader as error:
            logger.warning("Skipping %s: %s", filename, error)
            failures.append(ParseFailure(filename, str(error)))

    return PatchSet(files=tuple(files), failures=tuple(failures))


def added_lines(patches: Iterable[FilePatch]) -> list[AddedLine]:
    """Ordered added lines of all given files."""
    return [line for patch in patches for line in patch.added_lines]


class AnchorMap:
    """Lookup of added lines by diff position or by new-file line.

    ``get``/``get_by_line`` return None for unknown anchors; item access raises
    AnchorNotFound.
    """

    def __init__(self, lines: Iterable[AddedLine]) -> None:
        self._by_position: dict[tuple[str, int], AddedLine] = {}
        self._by_line: dict[tuple[str, int], AddedLine] = {}
        for line in lines:
            self._by_position[(line.filename, line.diff_position)] = line
            self._by_line[(line.filename, line.new_line)] = line

    @classmethod
    def from_patches(cls, patches: Iterable[FilePatch]) -> "AnchorMap":
        return cls(added_lines(patches))

    def get(self, filename: str, diff_position: int) -> AddedLine | None:
        return self._by_position.get((filename, diff_position))

    def get_by_line(self, filename: str, new_line: int) -> AddedLine | None:
        return self._by_line.get((filename, new_line))

    def __getitem__(self, anchor: tuple[str, int]) -> AddedLine:
        try:
            return self._by_position[anchor]
        except KeyError:
            raise AnchorNotFound(*anchor) from None

    def __contains__(self, anchor: object) -> bool:
        return anchor in self._by_position

    def __iter__(self) -> Iterator[AddedLine]:
        return iter(self._by_position.values())

    def __len__(self) -> int:
        return len(self._by_position)


def filter_locale_files(
    files: list[PlatformFile], pattern: str | re.Pattern[str] = DEFAULT_LOCALE_PATTERN
) -> tuple[list[PlatformFile], list[PlatformFile]]:
    """Split PR files into locale files worth reviewing and skipped files.

    Args:
        files: Files changed in the PR.
        pattern: Regex a locale file path must match.

    Returns:
        Tuple of (locale_files, skipped_files), both in PR order.
    """
    locale_pattern = re.compile(pattern)
    locale_files: list[PlatformFile] = []
    skipped: list[PlatformFile] = []

    for file in files:
        if locale_pattern.search(file.filename):
            locale_files.append(file)
        else:
            skipped.append(file)

    return locale_files, skipped
