"""
Command-line interface for aws-mfa-session.
"""

import argparse
import sys

from .config import resolve_config
from .core import (
    DEFAULT_DURATION,
    MAX_DURATION,
    MIN_DURATION,
    MfaSessionError,
    acquire_session,
)
from .credentials import CredentialProfile, update_credentials
from .shell import Shell, run_shell


def validate_code(value):
    """argparse type for MFA codes: exactly six digits."""
    if len(value) == 6 and value.isascii() and value.isdigit():
        return value
    raise argparse.ArgumentTypeError("MFA code must be exactly 6 digits")


def validate_duration(value):
    """argparse type for session durations in seconds."""
    try:
        seconds = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid duration: '{value}'")
    if not MIN_DURATION <= seconds < MAX_DURATION:
        raise argparse.ArgumentTypeError(
            f"duration must be between {MIN_DURATION} and {MAX_DURATION - 1} seconds"
        )
    return seconds


def prompt_for_code():
    """
    Ask for the MFA code on stderr so stdout stays safe to eval.

    Returns:
        str: Validated six digit code
    """
    print("Enter MFA code: ", end="", file=sys.stderr, flush=True)
    value = sys.stdin.readline().strip()
    return validate_code(value)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="aws-mfa-session",
        description="AWS MFA session manager",
        epilog="Examples:\n"
        "  aws-mfa-session -c 123456 -s                   # Shell with session credentials\n"
        "  eval $(aws-mfa-session -c 123456 -e)           # Export into the current shell\n"
        "  aws-mfa-session -c 123456 -u session-prod      # Write [session-prod] profile",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-p",
        "--profile",
        default=None,
        help="AWS credential profile to use. AWS_PROFILE is used by default",
    )
    parser.add_argument(
        "-f",
        "--credentials-file",
        default=None,
        help="AWS credentials file location to use. AWS_SHARED_CREDENTIALS_FILE is used if not defined",
    )
    parser.add_argument(
        "-r",
        "--region",
        default=None,
        help="AWS region. The profile region or AWS_DEFAULT_REGION is used if not defined",
    )
    parser.add_argument(
        "-c",
        "--code",
        type=validate_code,
        default=None,
        help="MFA code from MFA resource. Prompted for if omitted",
    )
    parser.add_argument(
        "-a",
        "--arn",
        default=None,
        help="MFA device ARN from user profile. It could be detected automatically",
    )
    parser.add_argument(
        "-d",
        "--duration",
        type=validate_duration,
        default=DEFAULT_DURATION,
        help=f"Session duration in seconds ({MIN_DURATION}-{MAX_DURATION - 1}, default: {DEFAULT_DURATION})",
    )
    parser.add_argument(
        "-s",
        "--shell",
        action="store_true",
        help="Run shell with AWS credentials as environment variables",
    )
    parser.add_argument(
        "-e",
        "--export",
        action="store_true",
        help="Print(export) AWS credentials as environment variables",
    )
    parser.add_argument(
        "-u",
        "--update-profile",
        dest="session_profile",
        metavar="PROFILE",
        default=None,
        help="Update AWS credential profile with temporary session credentials",
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Checked before asking AWS so an MFA code is not spent for nothing
    if not (args.shell or args.export or args.session_profile):
        parser.error("nothing to do: use -s, -e and/or -u PROFILE")

    code = args.code
    if code is None:
        try:
            code = prompt_for_code()
        except argparse.ArgumentTypeError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    config = resolve_config(
        profile=args.profile,
        credentials_file=args.credentials_file,
        region=args.region,
    )

    try:
        credentials = acquire_session(config, code, args.arn, args.duration)
    except MfaSessionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    prompt = credentials.prompt

    if args.session_profile:
        profile = CredentialProfile(
            name=args.session_profile,
            access_key_id=credentials.access_key_id,
            secret_access_key=credentials.secret_access_key,
            session_token=credentials.session_token,
            region=args.region,
        )
        try:
            update_credentials(profile, config.credentials_file)
        except OSError as e:
            print(f"Error: Failed to update profile '{profile.name}'", file=sys.stderr)
            print(f"Details: {e}", file=sys.stderr)
            sys.exit(1)
        print(
            f"✓ Profile '{profile.name}' updated in {config.credentials_file} "
            f"(expires {credentials.expiration})",
            file=sys.stderr,
        )

    if args.shell:
        try:
            run_shell(
                config.shell,
                credentials.access_key_id,
                credentials.secret_access_key,
                credentials.session_token,
                prompt,
            )
        except OSError as e:
            print(f"Error: Failed to start shell {config.shell}: {e}", file=sys.stderr)
            sys.exit(1)

    if args.export:
        try:
            Shell.from_path(config.shell).export(
                sys.stdout,
                credentials.access_key_id,
                credentials.secret_access_key,
                credentials.session_token,
                prompt,
            )
        except OSError as e:
            print(f"Error: Failed to write credentials: {e}", file=sys.stderr)
            sys.exit(1)

    return 0


if __name__ == "__main__":
    sys.exit(main())
