"""Tests for session credential acquisition."""

import datetime
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, NoCredentialsError

from mfasession.config import SessionConfig
from mfasession.core import (
    MfaSessionError,
    acquire_session,
    build_prompt,
    create_session,
    get_identity,
    get_mfa_serial,
    get_session_credentials,
)


def client_error(code, message="boom", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def make_session(sts=None, iam=None, region="us-east-1"):
    """Build a fake boto3 session whose client() returns the given mocks."""
    sts = sts or MagicMock()
    iam = iam or MagicMock()
    session = MagicMock()
    session.client.side_effect = lambda name, **kwargs: {"sts": sts, "iam": iam}[name]
    session.region_name = region
    return session, sts, iam


class TempConfigMixin:
    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.config = SessionConfig(
            profile=None,
            credentials_file=os.path.join(self.temp_dir, "credentials"),
            config_file=os.path.join(self.temp_dir, "config"),
            region=None,
            shell="/bin/bash",
        )

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestBuildPrompt(unittest.TestCase):
    def test_build_prompt(self):
        self.assertEqual(build_prompt("jimmy", "123456789012"), "AWS:jimmy@123456789012 \\$ ")


class TestCreateSession(TempConfigMixin, unittest.TestCase):
    """Test boto3 session construction."""

    def test_files_and_region_passed_explicitly(self):
        with open(self.config.credentials_file, "w") as f:
            f.write("[dev]\naws_access_key_id = AK\naws_secret_access_key = SK\n")
        self.config.profile = "dev"
        self.config.region = "eu-central-1"

        with patch.dict(os.environ, {}, clear=True):
            session = create_session(self.config)
            credentials = session.get_credentials()

        self.assertEqual(session.profile_name, "dev")
        self.assertEqual(session.region_name, "eu-central-1")
        self.assertEqual(credentials.access_key, "AK")

    def test_region_from_profile_config(self):
        with open(self.config.config_file, "w") as f:
            f.write("[default]\nregion = ap-southeast-2\n")

        with patch.dict(os.environ, {}, clear=True):
            session = create_session(self.config)

        self.assertEqual(session.region_name, "ap-southeast-2")

    def test_region_fallback(self):
        with patch.dict(os.environ, {}, clear=True):
            session = create_session(self.config)
        self.assertEqual(session.region_name, "us-east-1")

    def test_region_fallback_comes_from_config(self):
        self.config.fallback_region = "sa-east-1"
        with patch.dict(os.environ, {}, clear=True):
            session = create_session(self.config)
        self.assertEqual(session.region_name, "sa-east-1")

    def test_unknown_profile(self):
        self.config.profile = "missing"
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(MfaSessionError):
                create_session(self.config)


class TestGetMfaSerial(TempConfigMixin, unittest.TestCase):
    """Test MFA device discovery."""

    def test_explicit_arn(self):
        session, _, iam = make_session()
        self.assertEqual(get_mfa_serial(session, self.config, "arn:aws:iam::1:mfa/x"), "arn:aws:iam::1:mfa/x")
        iam.list_mfa_devices.assert_not_called()

    def test_serial_from_profile(self):
        with open(self.config.config_file, "w") as f:
            f.write("[default]\nmfa_serial = arn:aws:iam::1:mfa/from-config\n")
        session, _, iam = make_session()
        self.assertEqual(get_mfa_serial(session, self.config), "arn:aws:iam::1:mfa/from-config")
        iam.list_mfa_devices.assert_not_called()

    def test_serial_from_iam(self):
        session, _, iam = make_session()
        iam.list_mfa_devices.return_value = {
            "MFADevices": [{"SerialNumber": "arn:aws:iam::1:mfa/listed"}]
        }
        self.assertEqual(get_mfa_serial(session, self.config), "arn:aws:iam::1:mfa/listed")
        iam.list_mfa_devices.assert_called_once_with(MaxItems=1)

    def test_no_mfa_device(self):
        session, _, iam = make_session()
        iam.list_mfa_devices.return_value = {"MFADevices": []}
        with self.assertRaises(MfaSessionError) as ctx:
            get_mfa_serial(session, self.config)
        self.assertIn("No MFA device", str(ctx.exception))

    def test_list_devices_denied(self):
        session, _, iam = make_session()
        iam.list_mfa_devices.side_effect = client_error("AccessDenied", "not allowed")
        with self.assertRaises(MfaSessionError) as ctx:
            get_mfa_serial(session, self.config)
        self.assertIn("AccessDenied", str(ctx.exception))


class TestGetSessionCredentials(unittest.TestCase):
    """Test the GetSessionToken exchange."""

    def test_success(self):
        session, sts, _ = make_session()
        sts.get_session_token.return_value = {
            "Credentials": {
                "AccessKeyId": "ASIATEST",
                "SecretAccessKey": "secret",
                "SessionToken": "token",
                "Expiration": datetime.datetime(2030, 1, 1, tzinfo=datetime.timezone.utc),
            }
        }

        credentials = get_session_credentials(session, "arn:mfa", "123456", 7200)

        sts.get_session_token.assert_called_once_with(
            DurationSeconds=7200, SerialNumber="arn:mfa", TokenCode="123456"
        )
        self.assertEqual(credentials["AccessKeyId"], "ASIATEST")
        self.assertEqual(credentials["SessionToken"], "token")
        self.assertEqual(credentials["Expiration"], "2030-01-01T00:00:00+00:00")

    def test_no_credentials(self):
        session, sts, _ = make_session()
        sts.get_session_token.return_value = {}
        with self.assertRaises(MfaSessionError) as ctx:
            get_session_credentials(session, "arn:mfa", "123456")
        self.assertIn("No returned credentials", str(ctx.exception))

    def test_rejected_code(self):
        session, sts, _ = make_session()
        sts.get_session_token.side_effect = client_error("AccessDenied", "MultiFactorAuthentication failed")
        with self.assertRaises(MfaSessionError) as ctx:
            get_session_credentials(session, "arn:mfa", "123456")
        self.assertIn("MFA code rejected", str(ctx.exception))

    def test_no_source_credentials(self):
        session, sts, _ = make_session()
        sts.get_session_token.side_effect = NoCredentialsError()
        with self.assertRaises(MfaSessionError):
            get_session_credentials(session, "arn:mfa", "123456")


class TestGetIdentity(unittest.TestCase):
    """Test identity lookup for the prompt."""

    def test_success(self):
        session, sts, iam = make_session()
        sts.get_caller_identity.return_value = {"Account": "123456789012"}
        iam.get_user.return_value = {"User": {"UserName": "jimmy"}}
        self.assertEqual(get_identity(session), ("jimmy", "123456789012"))

    def test_no_account(self):
        session, sts, iam = make_session()
        sts.get_caller_identity.return_value = {}
        iam.get_user.return_value = {"User": {"UserName": "jimmy"}}
        with self.assertRaises(MfaSessionError) as ctx:
            get_identity(session)
        self.assertIn("No returned account", str(ctx.exception))

    def test_get_user_denied(self):
        session, sts, iam = make_session()
        sts.get_caller_identity.return_value = {"Account": "1"}
        iam.get_user.side_effect = client_error("AccessDenied")
        with self.assertRaises(MfaSessionError):
            get_identity(session)


class TestAcquireSession(TempConfigMixin, unittest.TestCase):
    """Test the full acquisition flow."""

    @patch("mfasession.core.create_session")
    def test_acquire_session(self, mock_create):
        session, sts, iam = make_session(region="eu-west-1")
        mock_create.return_value = session
        iam.list_mfa_devices.return_value = {"MFADevices": [{"SerialNumber": "arn:mfa"}]}
        sts.get_session_token.return_value = {
            "Credentials": {
                "AccessKeyId": "ASIA",
                "SecretAccessKey": "SECRET",
                "SessionToken": "TOKEN",
                "Expiration": "2030-01-01T00:00:00Z",
            }
        }
        sts.get_caller_identity.return_value = {"Account": "123456789012"}
        iam.get_user.return_value = {"User": {"UserName": "jimmy"}}

        result = acquire_session(self.config, "654321", duration_seconds=900)

        mock_create.assert_called_once_with(self.config)
        self.assertEqual(result.access_key_id, "ASIA")
        self.assertEqual(result.secret_access_key, "SECRET")
        self.assertEqual(result.session_token, "TOKEN")
        self.assertEqual(result.region, "eu-west-1")
        self.assertEqual(result.prompt, "AWS:jimmy@123456789012 \\$ ")
        sts.get_session_token.assert_called_once_with(
            DurationSeconds=900, SerialNumber="arn:mfa", TokenCode="654321"
        )


if __name__ == "__main__":
    unittest.main()
