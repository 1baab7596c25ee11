"""A greeting, printed directly or through a library function."""

from __future__ import annotations

import argparse
import sys

LIBRARY_GREETING = "Hello SLAM"
PROGRAM_GREETING = "Hello SLAM!"


def print_hello() -> str:
    """Write the library greeting to standard output and return it."""
    line = f"{LIBRARY_GREETING}\n"
    sys.stdout.write(line)
    sys.stdout.flush()
    return LIBRARY_GREETING


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Print a greeting.")
    parser.add_argument(
        "--library", action="store_true", help="greet through the library function"
    )
    args = parser.parse_args(argv)
    if args.library:
        print_hello()
    else:
        print(PROGRAM_GREETING)
    return 0