"""GitHub App integration: authentication, webhook dispatch and PR commenting."""
from __future__ import annotations

from .app import AppIdentity, GitHubApp
from .commenter import CommentRequest, GitHubCommentPoster, InstallationClient
from .errors import ApiErrorInfo, AuthError, GitHubApiError
from .webhook import (
    WebhookDispatcher,
    WebhookError,
    WebhookEvent,
    WebhookHandlerError,
    WebhookPayloadError,
    WebhookVerificationError,
    create_app,
    verify_signature,
)

__all__ = [
    "ApiErrorInfo",
    "AppIdentity",
    "AuthError",
    "CommentRequest",
    "GitHubApiError",
    "GitHubApp",
    "GitHubCommentPoster",
    "InstallationClient",
    "WebhookDispatcher",
    "WebhookError",
    "WebhookEvent",
    "WebhookHandlerError",
    "WebhookPayloadError",
    "WebhookVerificationError",
    "create_app",
    "verify_signature",
]
