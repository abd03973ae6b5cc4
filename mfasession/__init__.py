"""
aws-mfa-session: AWS MFA session manager.

A Python CLI utility that exchanges an MFA code for short-lived AWS session
credentials (STS GetSessionToken) and hands them over in one of three ways:

- Run an interactive shell with the credentials in its environment
- Print export statements for bash, sh, zsh, fish, cmd or PowerShell
- Write the credentials into a named profile of the AWS credentials file
"""

__version__ = "0.3.0"
__license__ = "MIT"

from .config import SessionConfig, resolve_config
from .core import (
    MfaSessionError,
    SessionCredentials,
    acquire_session,
    build_prompt,
)
from .credentials import (
    CredentialProfile,
    CredentialsFileError,
    get_mfa_serial_from_profile,
    persist_credentials,
    render_section,
    update_credentials,
    update_profile,
)
from .shell import Shell, export_credentials, resolve_shell, run_shell

__all__ = [
    # Credentials file
    "CredentialProfile",
    "CredentialsFileError",
    "render_section",
    "update_profile",
    "persist_credentials",
    "update_credentials",
    "get_mfa_serial_from_profile",
    # Shell export
    "Shell",
    "resolve_shell",
    "export_credentials",
    "run_shell",
    # Session acquisition
    "SessionConfig",
    "resolve_config",
    "SessionCredentials",
    "MfaSessionError",
    "acquire_session",
    "build_prompt",
]
