"""
Command-line entry point for the Attendance Client.

Provides login, logout, identity and session status commands for scripting
and troubleshooting.
"""

import sys
import json
import asyncio
import argparse
import getpass
import logging
from typing import Optional

from attendance_client.api_client import AttendanceAPIClient
from attendance_client.config import ClientConfiguration
from attendance_client.exceptions import AttendanceClientError
from attendance_client.logging_config import LogLevel, LogFormat, setup_logging, log_structured_error

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[list] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Attendance Client",
        epilog="""
Examples:
  %(prog)s --login alice          # Log in (prompts for the password)
  %(prog)s --whoami               # Ask the backend who is logged in
  %(prog)s --status --json        # Show the stored session as JSON
  %(prog)s --logout               # Forget the stored session
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    operation_group = parser.add_mutually_exclusive_group(required=True)
    operation_group.add_argument("--login", type=str, metavar="IDENTIFIER",
                                 help="Log in with a username or email")
    operation_group.add_argument("--logout", action="store_true",
                                 help="Clear the stored session")
    operation_group.add_argument("--whoami", action="store_true",
                                 help="Fetch the current user from the backend")
    operation_group.add_argument("--status", action="store_true",
                                 help="Show the stored session without a network call")

    parser.add_argument("--password", type=str, metavar="PASSWORD",
                        help="Password for --login (prompted when omitted)")

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument("--config", type=str, metavar="FILE",
                              help="Path to configuration file")
    config_group.add_argument("--api-url", type=str, metavar="URL",
                              help="Override API base URL")

    output_group = parser.add_argument_group('Output')
    output_group.add_argument("--json", action="store_true",
                              help="Output status in JSON format")
    output_group.add_argument("--debug", action="store_true",
                              help="Enable debug logging")
    output_group.add_argument("--log-file", type=str, metavar="FILE",
                              help="Also log to file")

    args = parser.parse_args(argv)

    if args.json and not args.status:
        parser.error("--json can only be used with --status")
    if args.password and not args.login:
        parser.error("--password requires --login")

    return args


def configure_logging(args, config: ClientConfiguration) -> None:
    if args.debug:
        level = LogLevel.DEBUG
    else:
        try:
            level = LogLevel(config.get_log_level())
        except ValueError:
            level = LogLevel.INFO

    # Keep JSON output machine readable
    if args.json:
        level = LogLevel.CRITICAL

    try:
        log_format = LogFormat(config.get_config('logging.format', 'standard'))
    except ValueError:
        log_format = LogFormat.STANDARD

    setup_logging(
        log_level=level,
        log_format=log_format,
        log_file=args.log_file or config.get_log_file()
    )


def session_status(client: AttendanceAPIClient) -> dict:
    identity = client.auth.get_stored_identity()
    expires_at = client.auth.credential_expires_at()
    return {
        'authenticated': client.auth.is_authenticated(),
        'user': identity.to_dict() if identity else None,
        'admin': client.auth.is_admin(),
        'expires_at': expires_at.isoformat() if expires_at else None,
    }


async def run_command(args, config: ClientConfiguration) -> int:
    async with AttendanceAPIClient(config=config) as client:
        if args.status:
            status = session_status(client)
            if args.json:
                print(json.dumps(status))
            elif status['authenticated'] and status['user']:
                user = status['user']
                print(f"Logged in as {user['username']} ({user['role']})")
                if status['expires_at']:
                    print(f"Credential expires at {status['expires_at']}")
            else:
                print("Not logged in")
            return 0 if status['authenticated'] else 1

        if args.logout:
            client.auth.logout()
            print("Logged out")
            return 0

        if args.login:
            password = args.password or getpass.getpass("Password: ")
            identity = await client.auth.login(args.login, password)
            print(f"✓ Logged in as {identity.display_name} ({identity.role.value})")
            return 0

        identity = await client.auth.fetch_current_identity()
        print(f"{identity.username} <{identity.email}> - {identity.display_name} ({identity.role.value})")
        return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the client."""
    args = parse_arguments(argv)

    try:
        config = ClientConfiguration(args.config)
        if args.api_url:
            config.set_override('api_url', args.api_url)

        configure_logging(args, config)
        return asyncio.run(run_command(args, config))

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except AttendanceClientError as e:
        log_structured_error(logger, e)
        print(f"✗ {e.user_message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
