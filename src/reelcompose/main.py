"""Subcommand dispatcher for reelcompose.

Usage:
    reelcompose export --project ... --output ...
    reelcompose still  --project ... --time 2.5 --output stills/
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="reelcompose",
        description="Two-clip timeline compositing: preview stills and video export.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Each subcommand delegates to its own module's main().
    subparsers.add_parser("export", help="Render a timeline project to mp4/webm")
    subparsers.add_parser("still", help="Render preview frames of a project to PNG")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "export":
        from .export_cli import main as export_main
        export_main(remaining)
    elif parsed.command == "still":
        from .still_cli import main as still_main
        still_main(remaining)


if __name__ == "__main__":
    main()
