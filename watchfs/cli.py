# watchfs/cli.py

"""
Command line interface for watchfs
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .errors import ConfigError, WatchStartError
from .utils.config import DEFAULT_DELAY_SECONDS, DEFAULT_PATH, WatchConfig, load_config
from .utils.logger import resolve_log_level, setup_logging
from .watch.monitor import EXIT_FATAL, WatchLoop

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130

DESCRIPTION = (
    "Generic file-watching with de-bouncing - runs a command on changes once quiescent.\n\n"
    "Watch a folder for file changes, and run some command after any change,\n"
    "once a timeout has elapsed with no further changes."
)

EPILOG = (
    "The trailing portion of the command-line is the command that should be run.\n"
    "Every argument from the first one that is not an option above belongs to the\n"
    "command.  If none is supplied, `echo` is substituted and the changed paths\n"
    "are printed to the console.\n\n"
    "Set the WATCHFS_LOG environment variable to debug, info, warning or error\n"
    "for more detailed logging."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watchfs",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-d", "--dir", dest="path", metavar="DIR",
                        help=f"The directory to watch (default {DEFAULT_PATH})")
    parser.add_argument("-s", "--seconds", dest="delay_seconds", type=float, metavar="N",
                        help="The number of seconds to wait for changes to cease before running "
                             f"the command (default {DEFAULT_DELAY_SECONDS})")
    parser.add_argument("-l", "--shell", action="store_true", default=None,
                        help="Execute the command in a shell (`sh -c` on unix, `cmd /C` on windows)")
    parser.add_argument("-p", "--pass-paths", dest="pass_changed_paths", action="store_true", default=None,
                        help="Pass paths to files that changed as arguments to the command")
    parser.add_argument("-r", "--relativize", dest="relativize_paths", action="store_true", default=None,
                        help="Make paths to changed files relative to the directory being watched")
    parser.add_argument("-f", "--filter", metavar="REGEX",
                        help="Only notify about file paths that match this regular expression "
                             "(matches against the fully qualified path, regardless of -r)")
    parser.add_argument("-i", "--ignore", metavar="REGEX",
                        help="Never notify about file paths that match this regular expression")
    parser.add_argument("-x", "--exit-on-error", action="store_true", default=None,
                        help="Exit if the command returns non-zero or the watch fails")
    parser.add_argument("-o", "--once", action="store_true", default=None,
                        help="Exit after running the command *successfully* (zero exit) once")
    parser.add_argument("-n", "--non-recursive", action="store_true", default=None,
                        help="Do not listen to subdirectories of the target directory, only the target")
    parser.add_argument("-P", "--poll", dest="use_polling", action="store_true", default=None,
                        help="Poll the file system instead of using OS notifications")
    parser.add_argument("-v", "--verbose", action="store_true", default=None,
                        help="Describe what the application is doing as it does it")
    parser.add_argument("-c", "--config", type=Path, metavar="FILE",
                        help="Read settings from a YAML or JSON file; options given here win")
    parser.add_argument("--log-file", metavar="FILE", help="Also write logs to this file")
    parser.add_argument("--log-format", choices=["text", "color", "json"],
                        help="Format of log output (default text)")
    parser.add_argument("command", nargs=argparse.REMAINDER,
                        help="Command and arguments to run on changes")
    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides = {
        key: value for key, value in vars(args).items()
        if key not in ("config", "command")
    }
    command = list(args.command or [])
    if command and command[0] == "--":
        command = command[1:]
    if command:
        overrides["command"] = tuple(command)
    return overrides


def resolve_config(args: argparse.Namespace) -> WatchConfig:
    """
    Combine the configuration file and the command line

    Raises:
        ConfigError: If the result is invalid
    """
    return load_config(args.config).merged(_overrides(args)).finalize()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return e.exit_code

    setup_logging(
        log_level=resolve_log_level(bool(config.verbose), config.log_level),
        log_file=config.log_file,
        log_format=config.log_format,
    )

    if config.verbose:
        print(f"Args:\n{config.to_yaml()}")
    logger.debug(f"Args: {config}")

    loop = WatchLoop(config)
    try:
        return loop.run()
    except WatchStartError as e:
        logger.error(str(e))
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
