"""Command-line interface and input handling.

Provides the argparse front end for running requests written in
``.http`` files.
"""

import argparse
import os
import sys

from rest_fusion import __version__
from rest_fusion.engine import DEFAULT_TIMEOUT


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser for the Rest-Fusion CLI."""
    parser = argparse.ArgumentParser(
        prog="rest-fusion",
        description=(
            "Rest-Fusion v{ver}: run HTTP requests written in plain-text "
            "files.\n\n"
            "Finds the request block at the given line (the nearest "
            "request line at or above it), substitutes {{{{NAME}}}} "
            "placeholders from the environment, sends the request and "
            "prints the response."
        ).format(ver=__version__),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  rest-fusion requests.http\n"
            "  rest-fusion requests.http --line 12\n"
            "  HOST=localhost:3000 rest-fusion api.http --line 4 --dry-run\n"
        ),
    )

    parser.add_argument(
        "request_file",
        help="Path to the file containing the HTTP requests.",
    )
    parser.add_argument(
        "-l",
        "--line",
        type=int,
        default=None,
        help=(
            "1-based cursor line; the request at or above it is run "
            "(default: the first request in the file)."
        ),
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the equivalent curl command instead of sending.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        dest="list_requests",
        help="List the request lines in the file and exit.",
    )
    parser.add_argument(
        "--raw-body",
        action="store_true",
        help=(
            "Send imported body files (<path) byte-for-byte, without "
            "comment stripping or placeholder substitution."
        ),
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT}).",
    )
    parser.add_argument(
        "-k",
        "--insecure",
        action="store_false",
        dest="verify",
        help="Skip TLS certificate verification.",
    )
    parser.add_argument(
        "--proxy",
        default=None,
        help=(
            "Route traffic through a proxy for debugging "
            "(e.g. http://127.0.0.1:8080)."
        ),
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write the result document to this file instead of stdout.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def validate_args(args: argparse.Namespace) -> None:
    """Validate parsed CLI arguments.

    Raises:
        SystemExit: If the request file is missing or unreadable, or a
            numeric option is out of range.
    """
    if not os.path.isfile(args.request_file):
        print(
            f"Error: Request file not found: '{args.request_file}'",
            file=sys.stderr,
        )
        sys.exit(1)

    if not os.access(args.request_file, os.R_OK):
        print(
            f"Error: Request file is not readable: '{args.request_file}'",
            file=sys.stderr,
        )
        sys.exit(1)

    if args.line is not None and args.line < 1:
        print("Error: Line number must be 1 or greater.", file=sys.stderr)
        sys.exit(1)

    if args.timeout <= 0:
        print("Error: Timeout must be greater than zero.", file=sys.stderr)
        sys.exit(1)


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate command-line arguments.

    Args:
        argv: Optional list of arguments (defaults to sys.argv).

    Returns:
        Parsed and validated argument namespace.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(args)
    return args
