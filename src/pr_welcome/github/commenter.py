"""Installation-scoped client that posts issue and pull request comments."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from .errors import raise_for_status

if TYPE_CHECKING:
    from .app import GitHubApp


@dataclass(frozen=True)
class CommentRequest:
    """A single comment to create on an issue or pull request."""

    owner: str
    repo: str
    issue_number: int
    body: str


@runtime_checkable
class GitHubCommentPoster(Protocol):
    """Anything that can create a comment on behalf of an installation.

    Implementations make exactly one attempt and raise
    :class:`~pr_welcome.github.errors.GitHubApiError` when GitHub answers
    with an error status.
    """

    async def create_comment(self, request: CommentRequest) -> dict[str, Any]:
        ...


class InstallationClient:
    """GitHub REST client bound to one installation of the App.

    Uses httpx.AsyncClient for all GitHub API interactions. The installation
    token is resolved through the owning GitHubApp, which caches it.
    """

    def __init__(self, app: GitHubApp, installation_id: int) -> None:
        self.app = app
        self.installation_id = installation_id

    async def _headers(self) -> dict[str, str]:
        token = await self.app.get_installation_token(self.installation_id)
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def create_comment(self, request: CommentRequest) -> dict[str, Any]:
        """Post a new comment on an issue or pull request.

        Args:
            request: Target repository, issue number and Markdown body.

        Returns:
            The created comment as returned by GitHub, or an empty dict when
            the success response carries no JSON object.

        Raises:
            GitHubApiError: If the token exchange or the comment call fails
                with an HTTP error status.
        """
        headers = await self._headers()
        async with httpx.AsyncClient(headers=headers, timeout=15.0) as client:
            resp = await client.post(
                f"{self.app.base_url}/repos/{request.owner}/{request.repo}"
                f"/issues/{request.issue_number}/comments",
                json={"body": request.body},
            )
        raise_for_status(resp)
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
