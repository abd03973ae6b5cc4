"""
Configuration discovery for aws-mfa-session.

Environment variables are read here once and the resolved values are passed
on explicitly; nothing in the package writes to os.environ.
"""

import os
from dataclasses import dataclass
from typing import Optional

AWS_PROFILE = "AWS_PROFILE"
AWS_SHARED_CREDENTIALS_FILE = "AWS_SHARED_CREDENTIALS_FILE"
AWS_CONFIG_FILE = "AWS_CONFIG_FILE"
AWS_DEFAULT_REGION = "AWS_DEFAULT_REGION"

FALLBACK_REGION = "us-east-1"


@dataclass
class SessionConfig:
    """Resolved settings for one invocation."""

    profile: Optional[str]
    credentials_file: str
    config_file: str
    region: Optional[str]
    shell: str
    fallback_region: str = FALLBACK_REGION


def get_aws_credentials_path(environ=None):
    """
    Get the AWS credentials file path.

    AWS_SHARED_CREDENTIALS_FILE wins over ~/.aws/credentials.
    """
    environ = os.environ if environ is None else environ
    override = environ.get(AWS_SHARED_CREDENTIALS_FILE)
    if override:
        return os.path.expanduser(override)
    return os.path.join(os.path.expanduser("~"), ".aws", "credentials")


def get_aws_config_path(environ=None):
    """Get the AWS config file path (AWS_CONFIG_FILE or ~/.aws/config)."""
    environ = os.environ if environ is None else environ
    override = environ.get(AWS_CONFIG_FILE)
    if override:
        return os.path.expanduser(override)
    return os.path.join(os.path.expanduser("~"), ".aws", "config")


def default_shell(environ=None):
    """Interpreter to use for the sub-shell and for export syntax."""
    environ = os.environ if environ is None else environ
    fallback = "cmd.exe" if os.name == "nt" else "/bin/sh"
    return environ.get("SHELL") or fallback


def default_region(environ=None):
    environ = os.environ if environ is None else environ
    return environ.get(AWS_DEFAULT_REGION) or FALLBACK_REGION


def resolve_config(profile=None, credentials_file=None, region=None, environ=None):
    """
    Resolve the settings for an invocation.

    Explicit arguments take precedence over environment variables, which
    take precedence over the AWS defaults.

    Args:
        profile: Source profile name from the command line
        credentials_file: Credentials file path from the command line
        region: Region from the command line
        environ: Mapping to read instead of os.environ

    Returns:
        SessionConfig
    """
    environ = os.environ if environ is None else environ
    if credentials_file:
        credentials_file = os.path.expanduser(credentials_file)
    else:
        credentials_file = get_aws_credentials_path(environ)

    return SessionConfig(
        profile=profile or environ.get(AWS_PROFILE) or None,
        credentials_file=credentials_file,
        config_file=get_aws_config_path(environ),
        region=region,
        shell=default_shell(environ),
        fallback_region=default_region(environ),
    )
