"""Command-line entry point.

Applies startup profiles outside of a host application, e.g. to prepare a
state directory or to check what a profile server delivers::

    startup-profiles --state-dir ./state -profileList base,team \\
        -profileLocation https://profiles.example.com/profiles

Options of this tool use ``--``; the single-dash application arguments
(``-profileList``, ``-profileLocation``, ``-pluginCustomization``) are passed
on to the command-line provider unchanged.
"""

import argparse
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from .errors import UnsupportedLocationSchemeError
from .loader.env import EnvironmentError as SettingsEnvironmentError
from .manager import build_profile_manager
from .models.schemas import ProfileSettings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UNSUPPORTED_LOCATION = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="startup-profiles",
        description="Resolve, download and combine startup profiles",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--state-dir", help="Writable state directory (cache and combined file)"
    )
    parser.add_argument(
        "--workspace", help="Workspace whose .profiles descriptor is read"
    )
    parser.add_argument(
        "--install-dir", help="Base directory for relative -profileLocation paths"
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Only show requested profiles and their local location",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Apply profiles even if a customization file is already pinned",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args, passthrough = parser.parse_known_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = ProfileSettings.from_environment(
            state_dir=args.state_dir, installation_dir=args.install_dir
        )
    except (ValidationError, SettingsEnvironmentError) as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    manager = build_profile_manager(
        passthrough, workspace_dir=args.workspace, settings=settings
    )
    try:
        if args.show:
            print(f"Requested profiles: {', '.join(manager.requested_profiles()) or '-'}")
            print(f"Active provider: {manager.active_provider!r}")
            print(f"Local profiles location: {manager.local_profiles_location() or '-'}")
            return EXIT_OK

        combined_file = manager.apply_profiles(overwrite=args.overwrite)
    except UnsupportedLocationSchemeError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_UNSUPPORTED_LOCATION
    finally:
        manager.close()

    applied = [p.name for p in manager.applied_profiles()]
    print(f"Applied profiles: {', '.join(applied) or '-'}")
    print(f"Combined preferences: {combined_file or '-'}")
    status = manager.download_was_successful()
    print(f"Download successful: {'n/a' if status is None else status}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
