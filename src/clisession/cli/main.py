"""
Main CLI entrypoint for clisession.

Usage:
    clisession --version
    clisession info [--json]
    clisession id [--prefix PREFIX] [--algorithm ALGO] [--binary]
    clisession size
    clisession caps [--json]
"""

import argparse
import json
import logging
import platform
import sys
from typing import List, Optional

from clisession import __version__
from clisession.config import load_config
from clisession.errors import ExitCode, SessionError
from clisession.platform.streams import StreamHandle
from clisession.platform.tty import ColorPrinter, is_tty
from clisession.session import Session


def get_version_string() -> str:
    """Generate a detailed version string."""
    python_version = platform.python_version()
    os_info = f"{platform.system()} {platform.release()}"
    return (
        f"clisession {__version__}\n"
        f"  python: {python_version}\n"
        f"  platform: {os_info}"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for clisession."""
    parser = argparse.ArgumentParser(
        prog="clisession",
        description="Inspect the terminal and host a CLI session runs in",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clisession info
  clisession id --prefix myapp-
  clisession caps --json
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=get_version_string(),
    )

    parser.add_argument(
        "-c", "--config",
        dest="config",
        default=None,
        help="Path to a YAML config file",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    info_parser = subparsers.add_parser("info", help="Show system and terminal facts")
    info_parser.add_argument("--json", action="store_true", dest="json_output",
                             help="Output as JSON")

    id_parser = subparsers.add_parser("id", help="Print the system identifier")
    id_parser.add_argument("--prefix", default=None, help="Prefix for the identifier")
    id_parser.add_argument("--algorithm", default=None,
                           help="hashlib algorithm (default from config: sha256)")
    id_parser.add_argument("--binary", action="store_true",
                           help="Use the raw digest (printed hex-encoded after the prefix)")

    subparsers.add_parser("size", help="Print terminal WIDTHxHEIGHT")

    caps_parser = subparsers.add_parser("caps", help="Show color and ANSI support per stream")
    caps_parser.add_argument("--json", action="store_true", dest="json_output",
                             help="Output as JSON")

    return parser


def configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        return
    level = logging.DEBUG if verbosity > 1 else logging.INFO
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def cmd_info(session: Session, args: argparse.Namespace) -> int:
    info = session.get_system_info()
    if args.json_output:
        print(json.dumps(dict(info), indent=2))
        return ExitCode.SUCCESS

    printer = ColorPrinter(session.is_color_supported(StreamHandle.STD_OUT))
    width = max(len(name) for name, _ in info)
    for name, value in info:
        print(f"{printer.cyan(name.ljust(width))}  {value}")
    return ExitCode.SUCCESS


def cmd_id(session: Session, args: argparse.Namespace) -> int:
    system_id = session.get_system_id(args.prefix, args.algorithm, args.binary)
    if isinstance(system_id, bytes):
        prefix = (args.prefix or "").encode("utf-8")
        system_id = prefix.decode("utf-8") + system_id[len(prefix):].hex()
    print(system_id)
    return ExitCode.SUCCESS


def cmd_size(session: Session, args: argparse.Namespace) -> int:
    print(f"{session.get_width()}x{session.get_height()}")
    return ExitCode.SUCCESS


def cmd_caps(session: Session, args: argparse.Namespace) -> int:
    caps = {
        handle.name: {
            "color": session.is_color_supported(handle),
            "ansi": session.is_ansi_supported(handle),
        }
        for handle in StreamHandle
    }
    disabled = {
        "color": session.is_color_disabled(),
        "ansi": session.is_ansi_disabled(),
    }

    if args.json_output:
        print(json.dumps({"streams": caps, "disabled": disabled}, indent=2))
        return ExitCode.SUCCESS

    printer = ColorPrinter(session.is_color_supported(StreamHandle.STD_OUT))

    def flag(value: bool) -> str:
        return printer.green("yes") if value else printer.dim("no")

    for name, support in caps.items():
        print(f"{printer.bold(name.ljust(7))}  color: {flag(support['color'])}  "
              f"ansi: {flag(support['ansi'])}")
    if disabled["color"]:
        print(printer.dim("NO_COLOR is set"))
    if disabled["ansi"]:
        print(printer.dim("DISABLE_ANSI is set"))
    return ExitCode.SUCCESS


COMMANDS = {
    "info": cmd_info,
    "id": cmd_id,
    "size": cmd_size,
    "caps": cmd_caps,
}


def main(argv: Optional[List[str]] = None, session: Optional[Session] = None) -> int:
    """Main entry point for the clisession CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return ExitCode.SUCCESS

    configure_logging(args.verbose)

    try:
        if session is None:
            session = Session(config=load_config(args.config))
        session.init()
        return COMMANDS[args.command](session, args)
    except SessionError as e:
        printer = ColorPrinter(is_tty(sys.stderr))
        print(printer.error(f"ERROR: {e}"), file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        return ExitCode.KEYBOARD_INTERRUPT


if __name__ == "__main__":
    sys.exit(main())
