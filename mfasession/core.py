"""
Temporary credential acquisition for aws-mfa-session.
"""

from dataclasses import dataclass

import boto3
import botocore.session
from botocore.exceptions import BotoCoreError, ClientError

from .credentials import get_mfa_serial_from_profile

DEFAULT_DURATION = 3600
MIN_DURATION = 900
MAX_DURATION = 129600  # exclusive


class MfaSessionError(Exception):
    """Raised when temporary session credentials cannot be obtained."""


@dataclass
class SessionCredentials:
    """Temporary credentials together with the identity that requested them."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: str
    user_name: str
    account: str
    region: str

    @property
    def prompt(self):
        return build_prompt(self.user_name, self.account)


def build_prompt(user_name, account):
    """Prompt string shown by shells that use the session credentials."""
    return f"AWS:{user_name}@{account} \\$ "


def _describe_client_error(e):
    error = e.response.get("Error", {})
    code = error.get("Code", "Unknown")
    message = error.get("Message", str(e))
    return code, message


def create_session(config):
    """
    Create a boto3 session for the source profile.

    The profile, credentials file and config file are handed to botocore
    as session variables rather than through the environment.

    Args:
        config: SessionConfig

    Returns:
        boto3.Session with a region always set

    Raises:
        MfaSessionError: If the profile cannot be loaded
    """
    botocore_session = botocore.session.Session()
    botocore_session.set_config_variable("credentials_file", config.credentials_file)
    botocore_session.set_config_variable("config_file", config.config_file)

    try:
        session = boto3.Session(
            botocore_session=botocore_session,
            profile_name=config.profile,
            region_name=config.region,
        )
        if not session.region_name:
            botocore_session.set_config_variable("region", config.fallback_region)
    except BotoCoreError as e:
        raise MfaSessionError(f"Cannot load AWS profile: {e}") from e

    return session


def get_mfa_serial(session, config, arn=None):
    """
    Determine the MFA device to authenticate with.

    Order: explicit ARN, mfa_serial from the profile configuration, first
    MFA device registered for the IAM user.

    Args:
        session: boto3.Session for the source profile
        config: SessionConfig
        arn: MFA device ARN from the command line

    Returns:
        str: MFA serial number or ARN

    Raises:
        MfaSessionError: If no MFA device can be found
    """
    if arn:
        return arn

    serial = get_mfa_serial_from_profile(
        config.profile, config.credentials_file, config.config_file
    )
    if serial:
        return serial

    try:
        response = session.client("iam").list_mfa_devices(MaxItems=1)
    except ClientError as e:
        code, message = _describe_client_error(e)
        raise MfaSessionError(f"Cannot list MFA devices ({code}): {message}") from e
    except BotoCoreError as e:
        raise MfaSessionError(f"Cannot list MFA devices: {e}") from e

    devices = response.get("MFADevices") or []
    if not devices:
        raise MfaSessionError("No MFA device in user profile")
    return devices[0]["SerialNumber"]


def get_session_credentials(session, serial_number, code, duration_seconds=DEFAULT_DURATION):
    """
    Exchange an MFA code for temporary credentials using GetSessionToken.

    Args:
        session: boto3.Session for the source profile
        serial_number: MFA device serial number or ARN
        code: Current MFA code
        duration_seconds: Lifetime of the credentials

    Returns:
        dict with AccessKeyId, SecretAccessKey, SessionToken, Expiration

    Raises:
        MfaSessionError: If STS rejects the request or returns no credentials
    """
    try:
        response = session.client("sts").get_session_token(
            DurationSeconds=duration_seconds,
            SerialNumber=serial_number,
            TokenCode=code,
        )
    except ClientError as e:
        code_name, message = _describe_client_error(e)
        if code_name == "AccessDenied":
            raise MfaSessionError(
                f"Cannot receive token: MFA code rejected for {serial_number}: {message}"
            ) from e
        raise MfaSessionError(f"Cannot receive token ({code_name}): {message}") from e
    except BotoCoreError as e:
        raise MfaSessionError(f"Cannot receive token: {e}") from e

    credentials = response.get("Credentials")
    if not credentials:
        raise MfaSessionError("No returned credentials")

    expiration = credentials.get("Expiration")
    return {
        "AccessKeyId": credentials["AccessKeyId"],
        "SecretAccessKey": credentials["SecretAccessKey"],
        "SessionToken": credentials["SessionToken"],
        "Expiration": expiration.isoformat() if hasattr(expiration, "isoformat") else str(expiration),
    }


def get_identity(session):
    """
    Get the IAM user name and account id behind the source profile.

    Returns:
        tuple: (user_name, account)

    Raises:
        MfaSessionError: If either lookup fails
    """
    try:
        identity = session.client("sts").get_caller_identity()
        user = session.client("iam").get_user().get("User")
    except ClientError as e:
        code, message = _describe_client_error(e)
        raise MfaSessionError(f"Cannot determine identity ({code}): {message}") from e
    except BotoCoreError as e:
        raise MfaSessionError(f"Cannot determine identity: {e}") from e

    account = identity.get("Account")
    if not account or not user:
        raise MfaSessionError("No returned account")
    return user["UserName"], account


def acquire_session(config, code, arn=None, duration_seconds=DEFAULT_DURATION):
    """
    Obtain MFA-backed temporary credentials for the configured profile.

    Args:
        config: SessionConfig
        code: MFA code
        arn: MFA device ARN, detected when None
        duration_seconds: Lifetime of the credentials

    Returns:
        SessionCredentials
    """
    session = create_session(config)
    serial_number = get_mfa_serial(session, config, arn)
    credentials = get_session_credentials(session, serial_number, code, duration_seconds)
    user_name, account = get_identity(session)

    return SessionCredentials(
        access_key_id=credentials["AccessKeyId"],
        secret_access_key=credentials["SecretAccessKey"],
        session_token=credentials["SessionToken"],
        expiration=credentials["Expiration"],
        user_name=user_name,
        account=account,
        region=session.region_name,
    )
