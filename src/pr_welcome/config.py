"""Configuration and environment management."""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

DEFAULT_PORT = 3000
MESSAGE_FILE = "message.md"

REQUIRED_VARIABLES = ("APP_ID", "PRIVATE_KEY_PATH", "WEBHOOK_SECRET")


class ConfigError(Exception):
    """Base class for startup configuration failures."""

    hint = "Please create a .env file based on .env.example"


class MissingVariableError(ConfigError):
    """One or more required environment variables are absent or empty."""

    def __init__(self, names: list[str]) -> None:
        self.names = list(names)
        super().__init__(
            f"Missing required environment variables: {', '.join(self.names)}"
        )


class InvalidVariableError(ConfigError):
    """An environment variable is set but cannot be parsed."""

    def __init__(self, name: str, value: str, reason: str) -> None:
        self.name = name
        self.value = value
        super().__init__(f"Invalid value for {name}: {value!r} ({reason})")


class UnreadableFileError(ConfigError):
    """A file required at startup could not be read."""

    def __init__(
        self,
        path: str | Path,
        cause: BaseException | None,
        hint: str,
        message: str | None = None,
    ) -> None:
        self.path = str(path)
        self.cause = cause
        self.hint = hint
        super().__init__(message or f"Error reading file at {self.path}: {cause}")


class EmptyFileError(UnreadableFileError):
    """A file required at startup exists but holds no content."""

    def __init__(self, path: str | Path, hint: str) -> None:
        super().__init__(path, None, hint, message=f"File at {path} is empty")


@dataclass(frozen=True)
class AppConfig:
    """Application configuration, built once at startup and never mutated."""

    app_id: str
    private_key: str
    webhook_secret: str
    comment_template: str
    enterprise_hostname: str | None = None
    port: int = DEFAULT_PORT

    def __repr__(self) -> str:
        return (
            f"AppConfig(app_id={self.app_id!r}, "
            f"enterprise_hostname={self.enterprise_hostname!r}, port={self.port})"
        )


def _read_text(path: Path, hint: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise UnreadableFileError(path, exc, hint) from exc


def _parse_port(raw: str) -> int:
    """Parse PORT, falling back to the default when unset or blank."""
    if not raw.strip():
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        raise InvalidVariableError("PORT", raw, "expected an integer") from None
    if not 0 < port < 65536:
        raise InvalidVariableError("PORT", raw, "expected a value between 1 and 65535")
    return port


def load_config(
    environ: Mapping[str, str] | None = None,
    message_path: str | Path = MESSAGE_FILE,
) -> AppConfig:
    """Load the application configuration from the environment and local files.

    Args:
        environ: Mapping to read variables from. Defaults to ``os.environ``.
        message_path: Path of the Markdown file used verbatim as the comment body.

    Returns:
        A populated AppConfig.

    Raises:
        MissingVariableError: If APP_ID, PRIVATE_KEY_PATH or WEBHOOK_SECRET
            is absent or empty. All missing names are reported together.
        InvalidVariableError: If PORT is not a valid port number.
        UnreadableFileError: If the private key or message file cannot be read.
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARIABLES if not env.get(name)]
    if missing:
        raise MissingVariableError(missing)

    port = _parse_port(env.get("PORT", ""))

    key_path = Path(env["PRIVATE_KEY_PATH"])
    key_hint = "Please ensure the PRIVATE_KEY_PATH environment variable points to a valid private key file"
    private_key = _read_text(key_path, key_hint)
    if not private_key.strip():
        raise EmptyFileError(key_path, key_hint)

    message_hint = f"Please ensure {Path(message_path).name} exists in the project root"
    comment_template = _read_text(Path(message_path), message_hint)
    if not comment_template.strip():
        raise EmptyFileError(message_path, message_hint)

    return AppConfig(
        app_id=env["APP_ID"],
        private_key=private_key,
        webhook_secret=env["WEBHOOK_SECRET"],
        comment_template=comment_template,
        enterprise_hostname=env.get("ENTERPRISE_HOSTNAME") or None,
        port=port,
    )
