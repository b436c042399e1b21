# bidscoin_wrangler/cli.py
"""Command line interface for bidscoin-wrangler."""

import sys
import argparse
import cProfile
import pstats

from . import wrangler
from . import logger
from . import config as config_mod
from .utils import WranglerError
from .constants import (
    __version__,
    BCW_ROOT,
    DEFAULT_REPO_URL,
    DEFAULT_PYTHON,
    DEFAULT_IMPORT_NAME,
    VALID_SHELLS,
    DEFAULT_SHELL,
    VALID_LOG_TIME_MODES,
    DEFAULT_LOG_TIMES_MODE,
    VALID_COLOR_MODES,
    DEFAULT_COLOR_MODE,
)

EPILOG = """\
selectors:
  stable          newest release tag (the default)
  latest, dev     newest commit on the main branch
  4.6.2           a specific release tag

examples:
  bidscoin-wrangler install
  bidscoin-wrangler install 4.6.1 --standalone
  eval "$(bidscoin-wrangler use stable)"
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bidscoin-wrangler",
        description="Install and switch between isolated versions of BIDScoin.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    setup_group = parser.add_argument_group("Setup", "Where and what to install.")
    setup_group.add_argument(
        "--root",
        type=str,
        default=str(BCW_ROOT),
        help="Directory holding installed versions and caches. Default $BCW_ROOT or ~/.bidscoin-wrangler",
    )
    setup_group.add_argument(
        "--repo-url",
        type=str,
        default=DEFAULT_REPO_URL,
        help="Git URL of the upstream repository.",
    )
    setup_group.add_argument(
        "--python",
        type=str,
        default=DEFAULT_PYTHON,
        help="Base interpreter used to create system mode environments.",
    )
    setup_group.add_argument(
        "--import-name",
        type=str,
        default=DEFAULT_IMPORT_NAME,
        help="Module imported to verify an installation.",
    )
    setup_group.add_argument(
        "--offline",
        action="store_true",
        help="Don't fetch from the upstream repository,  use cached tags and branches.",
    )
    setup_group.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Answer yes to confirmation prompts,  e.g. low disk space or clean-all.",
    )
    setup_group.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the import test after installing.",
    )

    misc_group = parser.add_argument_group("Miscellaneous", "Global wrangler settings.")
    misc_group.add_argument(
        "--verbose",
        action="store_true",
        help="Enable DEBUG log output",
    )
    misc_group.add_argument(
        "--debug",
        action="store_true",
        help="Drop into debugging with pdb on exceptions.",
    )
    misc_group.add_argument(
        "--profile",
        action="store_true",
        help="Run with cProfile and output profiling results to console.",
    )
    misc_group.add_argument(
        "--log-times",
        type=str,
        choices=VALID_LOG_TIME_MODES,
        default=DEFAULT_LOG_TIMES_MODE,
        help="Include timestamps in log messages, either as absolute/normal or elapsed times, both, or none.",
    )
    misc_group.add_argument(
        "--color",
        choices=VALID_COLOR_MODES,
        default=DEFAULT_COLOR_MODE,
        help="Colorize the log.",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    resolve = commands.add_parser(
        "resolve", help="Print the git reference and record name a selector resolves to."
    )
    resolve.add_argument("selector", nargs="?", default="stable")

    install = commands.add_parser("install", help="Install a version.")
    install.add_argument("selector", nargs="?", default="stable")
    install.add_argument(
        "--force",
        action="store_true",
        help="Remove and reinstall the version if it is already installed.",
    )
    install.add_argument(
        "--standalone",
        action="store_true",
        help="Build on a downloaded standalone Python instead of the system Python.",
    )

    commands.add_parser("list", help="List installed versions.")

    remove = commands.add_parser("remove", help="Remove an installed version.")
    remove.add_argument(
        "selector", help="Selector or installed record name to remove."
    )

    use = commands.add_parser(
        "use",
        help='Print shell code activating a version,  installing it first if needed. Use as: eval "$(bidscoin-wrangler use stable)"',
    )
    use.add_argument("selector", nargs="?", default="stable")
    use.add_argument(
        "--shell",
        choices=VALID_SHELLS,
        default=DEFAULT_SHELL,
        help="Shell syntax of the activation code.",
    )
    use.add_argument(
        "--standalone",
        action="store_true",
        help="If the version must be installed,  build it on a standalone Python.",
    )

    commands.add_parser("current", help="Show the active version.")

    versions = commands.add_parser("versions", help="List available release tags.")
    versions.add_argument(
        "--all", action="store_true", help="Show every release,  not just the newest."
    )

    commands.add_parser("clean-all", help="Remove every installed version.")

    return parser


def parse_args(argv=None):
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    args = parse_args(argv)
    if args.profile:
        with cProfile.Profile() as pr:
            exit_code = _main(args)
            pstats.Stats(pr, stream=sys.stderr).sort_stats("cumulative").print_stats(50)
    else:
        exit_code = _main(args)
    return exit_code


def _main(args) -> int:
    """Run one command,  reporting any failure as a single error line."""
    config = config_mod.WranglerConfig.from_args(args)
    config_mod.set_args_config(config)
    log = logger.get_configured_logger(config)
    try:
        version_wrangler = wrangler.VersionWrangler(config)
        success = version_wrangler.main()
    except KeyboardInterrupt:
        success = log.error("Operation cancelled by user")
    except WranglerError as e:
        success = log.error(str(e))
        log.debug(f"{type(e).__name__} raised.")
    except Exception as e:
        success = log.exception(e, "Failed:")
    log.print_log_counters()
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
