"""
Shell dialects for exporting session credentials.

Values written here may come from an MFA response or an account identity,
so each dialect escapes them before embedding them in a quoted statement.
"""

import io
import os
import subprocess
from enum import Enum

ACCESS_KEY_VAR = "AWS_ACCESS_KEY_ID"
SECRET_KEY_VAR = "AWS_SECRET_ACCESS_KEY"
SESSION_TOKEN_VAR = "AWS_SESSION_TOKEN"
PROMPT_VAR = "PS1"

UNIX_SHELLS = (
    ("/bin/bash", "BASH"),
    ("/bin/zsh", "ZSH"),
    ("/bin/sh", "SH"),
    ("/bin/fish", "FISH"),
)

WINDOWS_SHELLS = (
    ("cmd.exe", "CMD"),
    ("powershell.exe", "POWERSHELL"),
    ("pwsh.exe", "POWERSHELL"),
)


def escape_posix(value):
    """Escape a value for a single-quoted POSIX shell string."""
    return value.replace("'", "'\\''").replace('"', '\\"')


def escape_fish(value):
    """Escape a value for a double-quoted fish string."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")


def escape_cmd(value):
    return value.replace('"', '""')


def escape_powershell(value):
    # Backtick first so the escapes added below are not escaped again
    return value.replace("`", "``").replace('"', '`"').replace("$", "`$")


class Shell(Enum):
    """Command interpreter dialects that credentials can be exported for."""

    BASH = "bash"
    SH = "sh"
    ZSH = "zsh"
    FISH = "fish"
    CMD = "cmd"
    POWERSHELL = "powershell"

    @classmethod
    def from_path(cls, path):
        """
        Resolve the dialect of an interpreter from its path.

        Unix paths match case-sensitively on their trailing /bin/NAME at any
        depth, Windows executables match case-insensitively. Anything else,
        including an empty string, falls back to bash.

        Args:
            path: Interpreter path or executable name, e.g. the SHELL variable

        Returns:
            Shell
        """
        path = path or ""
        for suffix, member in UNIX_SHELLS:
            if path.endswith(suffix):
                return cls[member]
        lowered = path.lower()
        for suffix, member in WINDOWS_SHELLS:
            if lowered.endswith(suffix):
                return cls[member]
        return cls.BASH

    def export_lines(self, access_key_id, secret_access_key, session_token, prompt):
        """Build the four export statements for this dialect."""
        values = (
            (ACCESS_KEY_VAR, access_key_id),
            (SECRET_KEY_VAR, secret_access_key),
            (SESSION_TOKEN_VAR, session_token),
        )

        if self in (Shell.BASH, Shell.SH, Shell.ZSH):
            lines = [f"export {name}='{escape_posix(value)}'" for name, value in values]
            lines.append(f"export {PROMPT_VAR}='{escape_posix(prompt)}'")
        elif self is Shell.FISH:
            lines = [f'set -x {name} "{escape_fish(value)}"' for name, value in values]
            lines.append(f'set -x {PROMPT_VAR} "{escape_fish(prompt)}"')
        elif self is Shell.CMD:
            lines = [f'set "{name}={escape_cmd(value)}"' for name, value in values]
            lines.append(f'set "PROMPT={escape_cmd(prompt)}"')
        elif self is Shell.POWERSHELL:
            lines = [
                f'Set-Variable -Name "{name}" -Value "{escape_powershell(value)}"'
                for name, value in values
            ]
            lines.append(f'function prompt {{ "{escape_powershell(prompt)}" }}')
        else:
            raise ValueError(f"Unsupported shell: {self}")
        return lines

    def export(self, sink, access_key_id, secret_access_key, session_token, prompt):
        """
        Write credentials to sink as statements for this dialect.

        Statements are written in a fixed order: access key, secret key,
        session token, prompt. They are assembled first and written in a
        single call, so an OSError from the sink is raised before anything
        beyond that write is attempted.

        Args:
            sink: Writable text or binary stream, e.g. sys.stdout or
                sys.stdout.buffer; binary sinks receive UTF-8 bytes
            access_key_id: AWS access key id
            secret_access_key: AWS secret access key
            session_token: AWS session token
            prompt: Prompt string for the shell
        """
        lines = self.export_lines(access_key_id, secret_access_key, session_token, prompt)
        text = "\n".join(lines) + "\n"
        if isinstance(sink, (io.RawIOBase, io.BufferedIOBase)):
            sink.write(text.encode("utf-8"))
        else:
            sink.write(text)
        sink.flush()


def resolve_shell(path):
    """Map an interpreter path to a Shell dialect."""
    return Shell.from_path(path)


def export_credentials(shell, sink, access_key_id, secret_access_key, session_token, prompt):
    """Write export statements for shell to sink."""
    shell.export(sink, access_key_id, secret_access_key, session_token, prompt)


def run_shell(shell_path, access_key_id, secret_access_key, session_token, prompt):
    """
    Start an interactive shell with the session credentials in its environment.

    Args:
        shell_path: Interpreter to run
        access_key_id: AWS access key id
        secret_access_key: AWS secret access key
        session_token: AWS session token
        prompt: Value for PS1

    Returns:
        int: Exit code of the shell
    """
    env = dict(os.environ)
    env.update(
        {
            ACCESS_KEY_VAR: access_key_id,
            SECRET_KEY_VAR: secret_access_key,
            SESSION_TOKEN_VAR: session_token,
            PROMPT_VAR: prompt,
        }
    )
    completed = subprocess.run([shell_path], env=env)
    return completed.returncode
