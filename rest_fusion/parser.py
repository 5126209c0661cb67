"""Request block parsing engine.

Turns a block of lines from a ``.http`` file into a structured request
that the Python requests library can execute. A block starts at a
request line (e.g. ``POST http://localhost:3000/foo``) and runs until
the next request line or the end of the file:

    POST http://{{HOST}}/foo
    content-type: application/json
    # comments are ignored
    <./body.json

Line numbers are 1-based and inclusive throughout, like an editor cursor.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Callable, Mapping

from requests.utils import requote_uri

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

REQUEST_LINE_RE = re.compile(r"^(?:%s)\b" % "|".join(HTTP_METHODS))
PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
HTTP_VERSION_RE = re.compile(r"\s+HTTP/\d(?:\.\d)?$")

COMMENT_MARKERS = ("#", "//")
IMPORT_MARKER = "<"


class NoRequestFound(ValueError):
    """Raised when no request line exists at or above the cursor."""


class ImportFileNotFound(FileNotFoundError):
    """Raised when an imported body file does not exist at read time."""


class InlineBodySource:
    """Body text written directly below the headers."""

    __slots__ = ("text",)

    def __init__(self, text: str) -> None:
        self.text = text

    def __eq__(self, other: object) -> bool:
        return isinstance(other, InlineBodySource) and other.text == self.text

    def __repr__(self) -> str:
        return f"InlineBodySource({self.text!r})"


class FileBodySource:
    """Body read from an external file named by an import marker."""

    __slots__ = ("path",)

    def __init__(self, path: str) -> None:
        self.path = path

    def read(self) -> bytes:
        """Return the full contents of the imported file.

        Raises:
            ImportFileNotFound: If the file does not exist.
        """
        if not os.path.isfile(self.path):
            raise ImportFileNotFound(f"import file {self.path} not found")
        with open(self.path, "rb") as fh:
            return fh.read()

    def read_text(self, env: Mapping[str, str] | None = None) -> str:
        """Return the imported body the way inline bodies are built.

        Comment lines are dropped, placeholders are substituted and the
        remaining lines are concatenated without a separator.

        Raises:
            ImportFileNotFound: If the file does not exist.
            UnicodeDecodeError: If the file is not valid UTF-8.
        """
        text = self.read().decode("utf-8")
        return "".join(
            replace_vars(line, env)
            for line in text.splitlines()
            if not is_comment(line)
        )

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FileBodySource) and other.path == self.path

    def __repr__(self) -> str:
        return f"FileBodySource({self.path!r})"


BodySource = InlineBodySource | FileBodySource


class RequestBlock:
    """Container for one parsed request block."""

    __slots__ = ("method", "url", "headers", "body", "warnings")

    def __init__(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: BodySource | None,
        warnings: list[str] | None = None,
    ) -> None:
        self.method = method
        self.url = url
        self.headers = headers
        self.body = body
        self.warnings = warnings if warnings is not None else []

    def __repr__(self) -> str:
        return (
            f"RequestBlock(method={self.method!r}, url={self.url!r}, "
            f"headers=<{len(self.headers)} headers>, body={self.body!r})"
        )


def is_request_line(line: str) -> bool:
    """Return True if *line* starts with an upper-case HTTP method token."""
    return REQUEST_LINE_RE.match(line) is not None


def is_comment(line: str) -> bool:
    """Return True for ``#`` and ``//`` comments, indented or not."""
    return line.lstrip().startswith(COMMENT_MARKERS)


def is_import_marker(line: str) -> bool:
    return line.startswith(IMPORT_MARKER)


def replace_vars(text: str, env: Mapping[str, str] | None = None) -> str:
    """Substitute ``{{NAME}}`` placeholders with environment variables.

    Placeholders without a matching variable are left untouched.
    """
    if env is None:
        env = os.environ

    def _lookup(match: re.Match) -> str:
        return env.get(match.group(1), match.group(0))

    return PLACEHOLDER_RE.sub(_lookup, text)


def find_request_lines(lines: list[str]) -> list[int]:
    """Return the line numbers of every request line in *lines*."""
    return [
        number
        for number, line in enumerate(lines, start=1)
        if is_request_line(line)
    ]


def locate_block(lines: list[str], cursor_line: int) -> tuple[int, int]:
    """Find the request block the cursor is in.

    The block starts at the nearest request line at or above the cursor
    and ends one line before the next request line, or at the last line.

    Args:
        lines: All lines of the document.
        cursor_line: 1-based cursor position. Values past the end of the
            document are clamped to the last line.

    Returns:
        A ``(start_line, end_line)`` tuple.

    Raises:
        ValueError: If *cursor_line* is below 1.
        NoRequestFound: If no request line exists at or above the cursor.
    """
    if cursor_line < 1:
        raise ValueError(f"Cursor line must be >= 1, got {cursor_line}")

    last_line = len(lines)
    cursor_line = min(cursor_line, last_line)

    start_line = 0
    for number in range(cursor_line, 0, -1):
        if is_request_line(lines[number - 1]):
            start_line = number
            break
    if start_line == 0:
        raise NoRequestFound("No request found")

    end_line = last_line
    for number in range(start_line + 1, last_line + 1):
        if is_request_line(lines[number - 1]):
            end_line = number - 1
            break

    return start_line, end_line


def parse_request_line(
    line: str, env: Mapping[str, str] | None = None
) -> tuple[str, str]:
    """Split a request line into its method and encoded URL.

    The method is taken as-is; an unknown method is left for the HTTP
    client to reject. A trailing ``HTTP/1.1`` style version is dropped.
    """
    method, _, rest = line.strip().partition(" ")
    rest = HTTP_VERSION_RE.sub("", rest.strip())
    return method, requote_uri(replace_vars(rest, env))


def parse_headers(
    lines: list[str],
    start_line: int,
    end_line: int,
    warn: Callable[[str], None] | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[dict[str, str], int]:
    """Collect the header lines following the request line.

    Headers end at the first blank line, request line or import marker.
    Comment lines are skipped without ending the header section.

    Args:
        lines: All lines of the document.
        start_line: Line number of the request line.
        end_line: Last line of the block.
        warn: Receives a message for each malformed header line.
            Defaults to the module logger.
        env: Variables for placeholder substitution.

    Returns:
        A tuple of the header dict (lower-cased keys) and the line number
        after which the body begins.
    """
    if warn is None:
        warn = logger.warning

    headers: dict[str, str] = {}
    body_start = end_line

    for number in range(start_line + 1, end_line + 1):
        line = lines[number - 1]

        if is_comment(line):
            continue
        # Headers and body are separated by an empty line (RFC 2616)
        if not line.strip() or is_request_line(line):
            body_start = number
            break
        if is_import_marker(line):
            body_start = number - 1
            break

        if ":" not in line:
            warn(
                "Missing Key/Value pair in message header. "
                f"Ignoring line {number}: {line!r}"
            )
            continue

        key, _, value = line.partition(":")
        headers[key.strip().lower()] = replace_vars(value.strip(), env)

    return headers, body_start


def resolve_import_path(marker_line: str, source_path: str | None) -> str:
    """Return the absolute path named by an import marker line."""
    filename = marker_line[len(IMPORT_MARKER):].strip()
    if not os.path.isabs(filename):
        if source_path:
            base_dir = os.path.dirname(os.path.abspath(source_path))
        else:
            base_dir = os.getcwd()
        filename = os.path.join(base_dir, filename)
    return os.path.abspath(filename)


def parse_body(
    lines: list[str],
    start_line: int,
    end_line: int,
    source_path: str | None = None,
    env: Mapping[str, str] | None = None,
) -> BodySource | None:
    """Build the body source for lines ``start_line+1 .. end_line``.

    An import marker anywhere in the range wins over inline text. Inline
    lines are concatenated without a separator after comments are
    dropped.
    """
    if start_line >= end_line:
        return None

    region = lines[start_line:end_line]

    for line in region:
        if is_import_marker(line):
            return FileBodySource(resolve_import_path(line, source_path))

    text = "".join(
        replace_vars(line, env) for line in region if not is_comment(line)
    )
    if not text.strip():
        return None
    return InlineBodySource(text)


def parse(
    lines: list[str],
    cursor_line: int,
    source_path: str | None = None,
    env: Mapping[str, str] | None = None,
    on_warning: Callable[[str], None] | None = None,
) -> RequestBlock:
    """Parse the request block under the cursor.

    Args:
        lines: All lines of the document.
        cursor_line: 1-based cursor position.
        source_path: Location of the document, used to resolve relative
            body imports.
        env: Variables for placeholder substitution (default os.environ).
        on_warning: Optional callback for non-fatal parse warnings. All
            warnings are also kept in ``RequestBlock.warnings``.

    Returns:
        The parsed RequestBlock.

    Raises:
        NoRequestFound: If there is no request at or above the cursor.
    """
    warnings: list[str] = []

    def _warn(message: str) -> None:
        warnings.append(message)
        if on_warning is not None:
            on_warning(message)

    start_line, end_line = locate_block(lines, cursor_line)
    method, url = parse_request_line(lines[start_line - 1], env)
    headers, body_start = parse_headers(
        lines, start_line, end_line, warn=_warn, env=env
    )
    body = parse_body(lines, body_start, end_line, source_path, env)

    return RequestBlock(
        method=method,
        url=url,
        headers=headers,
        body=body,
        warnings=warnings,
    )


def load_request_file(filepath: str) -> list[str]:
    """Read a request file and return its lines without line endings.

    Raises:
        FileNotFoundError: If the file does not exist.
        IOError: If the file cannot be read.
    """
    with open(filepath, "r", encoding="utf-8") as fh:
        return fh.read().splitlines()
