"""Errors raised by the GitHub client adapter."""
from __future__ import annotations

from dataclasses import dataclass

import httpx


@dataclass(frozen=True)
class ApiErrorInfo:
    """HTTP status and message extracted from a failed GitHub API call."""

    status: int
    message: str


class AuthError(Exception):
    """The App credentials could not be used to authenticate."""


class GitHubApiError(Exception):
    """GitHub answered an API call with a non-success status."""

    def __init__(self, info: ApiErrorInfo) -> None:
        self.info = info
        super().__init__(f"GitHub API error {info.status}: {info.message}")

    @property
    def status(self) -> int:
        return self.info.status

    @property
    def message(self) -> str:
        return self.info.message

    @classmethod
    def from_response(cls, response: httpx.Response) -> GitHubApiError:
        """Build an error from a GitHub response, preferring its JSON ``message``."""
        message = ""
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message = str(data.get("message", ""))
        return cls(ApiErrorInfo(response.status_code, message or response.reason_phrase))


def raise_for_status(response: httpx.Response) -> None:
    """Raise GitHubApiError for any non-2xx response."""
    if not response.is_success:
        raise GitHubApiError.from_response(response)
