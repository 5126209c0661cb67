"""Rest-Fusion main entry point.

Ties together the CLI, parser, and engine modules to run the request
under a given line of a ``.http`` file.
"""

import logging
import sys

from rest_fusion.cli import parse_cli
from rest_fusion.engine import (
    RequestExecutionFailed,
    build_curl_command,
    execute_request,
    format_result,
)
from rest_fusion.parser import (
    NoRequestFound,
    find_request_lines,
    load_request_file,
    parse,
)


def _print_warning(message: str) -> None:
    print(f"[!] {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Run the Rest-Fusion tool.

    Args:
        argv: Optional argument list (defaults to sys.argv).

    Returns:
        Exit code (0 = success, 1 = HTTP error status, 2 = error).
    """
    args = parse_cli(argv)

    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    try:
        lines = load_request_file(args.request_file)
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Error reading request file: {exc}", file=sys.stderr)
        return 2

    request_lines = find_request_lines(lines)

    if args.list_requests:
        for number in request_lines:
            print(f"{number:>5}  {lines[number - 1]}")
        return 0

    cursor_line = args.line
    if cursor_line is None:
        cursor_line = request_lines[0] if request_lines else 1

    print(
        f"[*] Parsing request at line {cursor_line} of {args.request_file}",
        file=sys.stderr,
    )
    try:
        block = parse(
            lines,
            cursor_line,
            source_path=args.request_file,
            on_warning=_print_warning,
        )
    except NoRequestFound as exc:
        print(f"Error parsing request: {exc}", file=sys.stderr)
        return 2

    if args.dry_run:
        try:
            print(build_curl_command(block, raw_files=args.raw_body))
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Error reading request body: {exc}", file=sys.stderr)
            return 2
        return 0

    print(f"[*] {block.method} {block.url}", file=sys.stderr)
    if args.proxy:
        print(f"    Proxy  : {args.proxy}", file=sys.stderr)

    try:
        result = execute_request(
            block,
            timeout=args.timeout,
            verify=args.verify,
            proxy=args.proxy,
            raw_files=args.raw_body,
        )
    # missing or unreadable import files
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Error reading request body: {exc}", file=sys.stderr)
        return 2
    except RequestExecutionFailed as exc:
        print(f"Error during request: {exc}", file=sys.stderr)
        return 2

    document = "\n".join(format_result(result)) + "\n"
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as fh:
                fh.write(document)
        except OSError as exc:
            print(f"Error writing result file: {exc}", file=sys.stderr)
            return 2
        print(f"[*] Response written to {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(document)

    return 1 if result.status_code >= 400 else 0


if __name__ == "__main__":
    sys.exit(main())
