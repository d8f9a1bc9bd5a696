"""Webhook event handlers: greet every newly opened pull request."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .config import AppConfig
from .github.commenter import CommentRequest, GitHubCommentPoster
from .github.errors import GitHubApiError
from .github.webhook import (
    WebhookDispatcher,
    WebhookEvent,
    WebhookPayloadError,
    log_webhook_error,
)

logger = logging.getLogger(__name__)

PULL_REQUEST_OPENED = "pull_request.opened"


@dataclass
class PullRequestOpenedEvent:
    """The fields of a ``pull_request.opened`` payload needed to comment on it."""

    repository_owner: str
    repository_name: str
    pull_request_number: int
    raw_payload: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PullRequestOpenedEvent:
        """Extract the event from a webhook payload.

        Raises:
            WebhookPayloadError: If the repository or pull request fields are missing.
        """
        try:
            repository = payload["repository"]
            return cls(
                repository_owner=repository["owner"]["login"],
                repository_name=repository["name"],
                pull_request_number=int(payload["pull_request"]["number"]),
                raw_payload=payload,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise WebhookPayloadError(
                f"Malformed pull_request.opened payload: missing {exc}"
            ) from exc

    def comment_request(self, body: str) -> CommentRequest:
        return CommentRequest(
            owner=self.repository_owner,
            repo=self.repository_name,
            issue_number=self.pull_request_number,
            body=body,
        )


class PullRequestOpenedHandler:
    """Posts the configured message as a comment on each opened pull request.

    Failures are logged and swallowed so the delivery is still acknowledged.
    Nothing is retried; a redelivered event produces a second comment.
    """

    def __init__(self, comment_template: str) -> None:
        self.comment_template = comment_template

    async def __call__(self, client: GitHubCommentPoster, event: WebhookEvent) -> None:
        pull_request = PullRequestOpenedEvent.from_payload(event.payload)
        number = pull_request.pull_request_number
        logger.info("Received a pull request event for #%d", number)

        request = pull_request.comment_request(self.comment_template)
        try:
            await client.create_comment(request)
        except GitHubApiError as exc:
            logger.error("Error! Status: %s. Message: %s", exc.status, exc.message)
            return
        except Exception as exc:
            logger.error("Unexpected error: %r", exc)
            return

        logger.info("Successfully commented on PR #%d", number)


def register_handlers(dispatcher: WebhookDispatcher, config: AppConfig) -> None:
    """Wire the pull request greeting and the default error reporter."""
    dispatcher.on(PULL_REQUEST_OPENED, PullRequestOpenedHandler(config.comment_template))
    dispatcher.on_error(log_webhook_error)
