"""
AWS credentials file handling for aws-mfa-session.

The credentials file is human-edited, so it is never round-tripped through
configparser when writing: only the section being updated is rewritten and
every other byte of the file is kept as it was.
"""

import configparser
import os
import re
import stat
import tempfile
from dataclasses import dataclass
from typing import List, Optional

NEW_FILE_MODE = 0o600

SECTION_HEADER = re.compile(r"\[(?P<header>.+)\]")


class CredentialsFileError(OSError):
    """Raised when the credentials file cannot be read, written or replaced."""


@dataclass
class CredentialProfile:
    """A named set of credentials destined for one section of the file."""

    name: str
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None
    region: Optional[str] = None

    def section_header(self):
        return f"[{self.name}]"

    def config_section(self):
        """
        Render the profile as a credentials file section.

        Values are written verbatim; they are issuer-controlled strings and
        the format has no quoting.

        Returns:
            str: Section text ending with a single newline
        """
        lines = [
            self.section_header(),
            f"aws_access_key_id = {self.access_key_id}",
            f"aws_secret_access_key = {self.secret_access_key}",
        ]
        if self.session_token is not None:
            lines.append(f"aws_session_token = {self.session_token}")
        if self.region is not None:
            lines.append(f"region = {self.region}")
        return "\n".join(lines) + "\n"


def render_section(profile):
    """Render a CredentialProfile as credentials file text."""
    return profile.config_section()


@dataclass
class Section:
    """One block of the credentials file, kept as its original text."""

    name: Optional[str]
    text: str


def _section_name(line):
    # Same header rule as configparser (and so botocore): text inside the
    # brackets of the stripped line, anything after the closing ']' ignored
    match = SECTION_HEADER.match(line.strip())
    if match:
        return match.group("header")
    return None


def parse_sections(text) -> List[Section]:
    """
    Split credentials file text into an ordered list of sections.

    A section starts at a line whose first non-blank character is '[' and
    runs up to the next such line. Text before the first header becomes a
    leading section with name None. Joining the text of all sections
    reproduces the input exactly.

    Args:
        text: Full credentials file contents

    Returns:
        list of Section
    """
    sections = []
    current = Section(name=None, text="")
    for line in text.splitlines(keepends=True):
        if line.lstrip().startswith("["):
            if current.name is not None or current.text:
                sections.append(current)
            current = Section(name=_section_name(line), text=line)
        else:
            current.text += line
    if current.name is not None or current.text:
        sections.append(current)
    return sections


def update_profile(config, profile):
    """
    Insert or replace a profile section in credentials file text.

    When a section named after the profile exists, the first one is
    replaced in place by the rendered profile plus one blank line; all
    other sections stay byte-identical. Otherwise the rendered profile is
    appended after a blank line.

    Args:
        config: Current credentials file contents
        profile: CredentialProfile to write

    Returns:
        str: New credentials file contents
    """
    sections = parse_sections(config)
    for index, section in enumerate(sections):
        if section.name == profile.name:
            replacement = Section(name=profile.name, text=profile.config_section() + "\n")
            sections[index] = replacement
            return "".join(s.text for s in sections)

    return f"{config}\n\n{profile.config_section()}"


def persist_credentials(file_path, contents):
    """
    Atomically replace the credentials file with new contents.

    The new contents go to a temporary file in the same directory, which
    receives the permission bits of the file it replaces (0o600 for a new
    file) and is then renamed over the target. The original file is left
    untouched if any step before the rename fails.

    Args:
        file_path: Path to the credentials file
        contents: Full text to write

    Raises:
        CredentialsFileError: If any step fails
    """
    file_path = os.fspath(file_path)
    directory = os.path.dirname(os.path.abspath(file_path))
    if not os.path.isdir(directory):
        raise CredentialsFileError(
            f"Credentials directory {directory} does not exist"
        )

    try:
        mode = stat.S_IMODE(os.stat(file_path).st_mode)
    except FileNotFoundError:
        mode = NEW_FILE_MODE
    except OSError as e:
        raise CredentialsFileError(
            f"Cannot read permissions of {file_path}: {e.strerror}"
        ) from e

    try:
        fd, temp_path = tempfile.mkstemp(
            dir=directory, prefix=".credentials-", suffix=".tmp"
        )
    except OSError as e:
        raise CredentialsFileError(
            f"Cannot create temporary file in {directory}: {e.strerror}"
        ) from e

    try:
        try:
            with open(fd, "w", encoding="utf-8", newline="") as f:
                f.write(contents)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise CredentialsFileError(
                f"Cannot write temporary file {temp_path}: {e.strerror}"
            ) from e

        try:
            os.chmod(temp_path, mode)
        except OSError as e:
            raise CredentialsFileError(
                f"Cannot copy permissions {oct(mode)} to {temp_path}: {e.strerror}"
            ) from e

        try:
            os.replace(temp_path, file_path)
        except OSError as e:
            raise CredentialsFileError(
                f"Cannot replace {file_path}: {e.strerror}"
            ) from e
    except BaseException:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        raise


def read_credentials_text(file_path):
    """
    Read the credentials file as text, newlines kept verbatim.

    Returns an empty string if the file does not exist yet.
    """
    try:
        with open(file_path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError:
        return ""
    except (OSError, UnicodeDecodeError) as e:
        reason = e.strerror if isinstance(e, OSError) else str(e)
        raise CredentialsFileError(
            f"Cannot read credentials file {file_path}: {reason}"
        ) from e


def update_credentials(profile, file_path):
    """
    Write a profile into the credentials file at file_path.

    Args:
        profile: CredentialProfile to insert or replace
        file_path: Path to the credentials file

    Raises:
        CredentialsFileError: If the file cannot be read or replaced
    """
    current = read_credentials_text(file_path)
    persist_credentials(file_path, update_profile(current, profile))


def read_aws_config(config_file):
    """
    Read an AWS config or credentials file for lookups.

    Args:
        config_file: Path to the file

    Returns:
        ConfigParser object, empty if the file is missing or unparsable
    """
    config = configparser.ConfigParser(interpolation=None)
    config.optionxform = str  # Preserve case sensitivity
    if os.path.exists(config_file):
        try:
            config.read(config_file, encoding="utf-8")
        except configparser.Error:
            return configparser.ConfigParser(interpolation=None)
    return config


def _mfa_serial_from_file(file_path, section_names):
    config = read_aws_config(file_path)
    for section_name in section_names:
        if section_name in config:
            serial = config[section_name].get("mfa_serial")
            if serial:
                return serial
    return None


def get_mfa_serial_from_profile(profile_name, credentials_file, config_file):
    """
    Look up the mfa_serial configured for a profile.

    The credentials file uses [NAME] sections, the config file uses
    [profile NAME] (the default profile may be [default] or
    [profile default]). A value in the config file wins.

    Args:
        profile_name: Profile to look up, None for "default"
        credentials_file: Path to the credentials file
        config_file: Path to the config file

    Returns:
        str: MFA serial number or ARN, None if not configured
    """
    profile_name = profile_name or "default"

    if profile_name == "default":
        config_sections = ["default", "profile default"]
    else:
        config_sections = [f"profile {profile_name}"]

    from_config = _mfa_serial_from_file(config_file, config_sections)
    if from_config:
        return from_config
    return _mfa_serial_from_file(credentials_file, [profile_name])
