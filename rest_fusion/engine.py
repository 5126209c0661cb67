"""Request execution and result formatting.

Sends a parsed RequestBlock with the requests library and renders the
response as a plain-text result document:

    POST http://localhost:3000/foo
    HTTP/1.1 201 Created
    Content-Type: application/json

    {
      "id": 1
    }
"""

from __future__ import annotations

import json
import logging
import shlex
from http import HTTPStatus
from typing import Mapping

import requests
import urllib3

from rest_fusion.parser import FileBodySource, InlineBodySource, RequestBlock

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

HTTP_VERSION = "HTTP/1.1"


class RequestExecutionFailed(Exception):
    """Raised when the HTTP transport fails to deliver a request."""


class ExecutionResult:
    """Container for the response to an executed request."""

    __slots__ = (
        "method",
        "url",
        "status_code",
        "reason",
        "headers",
        "body",
    )

    def __init__(
        self,
        method: str,
        url: str,
        status_code: int,
        reason: str,
        headers: dict[str, str],
        body: str,
    ) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.headers = headers
        self.body = body


def request_data(
    block: RequestBlock,
    raw_files: bool = False,
    env: Mapping[str, str] | None = None,
) -> bytes | None:
    """Return the bytes to send as the request body, if any.

    Imported files get the same comment stripping and placeholder
    substitution as inline bodies unless *raw_files* is set, in which
    case their bytes are sent untouched.

    Raises:
        ImportFileNotFound: If the body is imported from a missing file.
        OSError: If the imported file cannot be read.
        UnicodeDecodeError: If the imported file is not valid UTF-8.
    """
    if isinstance(block.body, FileBodySource):
        if raw_files:
            return block.body.read()
        return block.body.read_text(env).encode("utf-8")
    if isinstance(block.body, InlineBodySource):
        return block.body.text.encode("utf-8")
    return None


def execute_request(
    block: RequestBlock,
    timeout: float = DEFAULT_TIMEOUT,
    verify: bool = True,
    proxy: str | None = None,
    raw_files: bool = False,
) -> ExecutionResult:
    """Execute the request described by *block*.

    Args:
        block: The parsed request block.
        timeout: Request timeout in seconds.
        verify: Whether to verify TLS certificates.
        proxy: Optional proxy URL used for both http and https.
        raw_files: Send imported body files as raw bytes.

    Returns:
        An ExecutionResult holding the response.

    Raises:
        ImportFileNotFound: If the imported body file is missing.
        OSError: If the imported body file cannot be read.
        RequestExecutionFailed: If the transport raises an error.
    """
    data = request_data(block, raw_files=raw_files)

    proxies = None
    if proxy:
        proxies = {"http": proxy, "https": proxy}

    if not verify:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    logger.debug("Sending %s %s", block.method, block.url)
    try:
        response = requests.request(
            method=block.method,
            url=block.url,
            headers=block.headers,
            data=data,
            proxies=proxies,
            timeout=timeout,
            verify=verify,
        )
    # http.client raises UnicodeEncodeError for non-Latin-1 header values
    except (requests.RequestException, UnicodeError, ValueError) as exc:
        raise RequestExecutionFailed(
            f"Failed to perform the request {block.method} {block.url}. "
            "Make sure that you have entered the proper URL and the "
            f"server is running.\n\nTraceback: {exc}"
        ) from exc
    logger.debug("Received HTTP %s", response.status_code)

    return ExecutionResult(
        method=block.method,
        url=block.url,
        status_code=response.status_code,
        reason=response.reason or "",
        headers=dict(response.headers),
        body=response.text,
    )


def is_json_content(headers: dict[str, str]) -> bool:
    """Return True if the Content-Type header names a JSON media type."""
    for key, value in headers.items():
        if key.lower() == "content-type":
            return "json" in value.lower()
    return False


def status_line(status_code: int, reason: str = "") -> str:
    """Build a status line such as ``HTTP/1.1 404 Not Found``."""
    if not reason:
        try:
            reason = HTTPStatus(status_code).phrase
        except ValueError:
            reason = ""
    return f"{HTTP_VERSION} {status_code} {reason}".rstrip()


def format_body(body: str, as_json: bool) -> str:
    if not as_json:
        return body
    try:
        return json.dumps(json.loads(body), indent=2, ensure_ascii=False)
    except ValueError:
        return body


def format_result(result: ExecutionResult) -> list[str]:
    """Render an ExecutionResult as the lines of a result document."""
    lines = [
        f"{result.method} {result.url}",
        status_line(result.status_code, result.reason),
    ]
    lines.extend(f"{key}: {value}" for key, value in result.headers.items())
    lines.append("")
    body = format_body(result.body, is_json_content(result.headers))
    lines.extend(body.splitlines())
    return lines


def build_curl_command(block: RequestBlock, raw_files: bool = False) -> str:
    """Return a shell-quoted curl command equivalent to *block*.

    Imported files are only referenced by path when *raw_files* is set;
    otherwise they are read and processed like inline bodies.
    """
    args = ["curl", "-X", block.method, block.url]
    for key, value in block.headers.items():
        args.extend(["-H", f"{key}: {value}"])
    if isinstance(block.body, FileBodySource):
        if raw_files:
            args.extend(["--data-binary", f"@{block.body.path}"])
        else:
            args.extend(["--data-raw", block.body.read_text()])
    elif isinstance(block.body, InlineBodySource):
        args.extend(["--data-raw", block.body.text])
    return shlex.join(args)
