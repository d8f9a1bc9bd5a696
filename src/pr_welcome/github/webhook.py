"""Webhook verification, event dispatch and the FastAPI receiver."""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, Request, Response

from .commenter import GitHubCommentPoster

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/webhook"

SIGNATURE_HEADER = "x-hub-signature-256"
EVENT_HEADER = "x-github-event"
DELIVERY_HEADER = "x-github-delivery"


class WebhookError(Exception):
    """Base class for failures while handling a webhook delivery."""


class WebhookVerificationError(WebhookError):
    """The delivery's signature does not match the shared secret."""

    def __init__(self, event: str | None = None, delivery_id: str | None = None) -> None:
        self.event = event
        self.delivery_id = delivery_id
        super().__init__(
            f"signature does not match event payload and secret ({event or 'unknown event'})"
        )


class WebhookPayloadError(WebhookError):
    """The delivery is missing required headers or its body cannot be parsed."""


class WebhookHandlerError(WebhookError):
    """A registered handler raised while processing a verified event."""

    def __init__(self, event: WebhookEvent, cause: BaseException) -> None:
        self.event = event
        self.cause = cause
        super().__init__(f"Handler for {event.qualified_name} failed: {cause!r}")


@dataclass
class WebhookEvent:
    """A verified, parsed webhook delivery."""

    name: str
    action: str = ""
    delivery_id: str = ""
    installation_id: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    handled: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{self.name}.{self.action}" if self.action else self.name


EventHandler = Callable[[GitHubCommentPoster, WebhookEvent], Awaitable[None]]
ErrorHandler = Callable[[Exception], None]
ClientFactory = Callable[[int], GitHubCommentPoster]


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Check a delivery body against its ``X-Hub-Signature-256`` header.

    Only the ``sha256=`` scheme is accepted; the legacy SHA-1 header is
    ignored. Digests are compared in constant time.
    """
    scheme, _, received = signature.partition("=")
    if scheme != "sha256" or not received:
        return False
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest.encode(), received.encode())


def log_webhook_error(error: Exception) -> None:
    """Default error handler: report verification failures apart from everything else."""
    if isinstance(error, WebhookVerificationError):
        logger.warning("Error processing request: %s", error.event or "unknown event")
    else:
        logger.error("Webhook error: %r", error)


class WebhookDispatcher:
    """Verifies webhook deliveries and routes them to registered handlers.

    Handlers are keyed either by bare event name (``pull_request``) or by
    event and action (``pull_request.opened``). Each handler receives a
    client scoped to the installation that sent the event.
    """

    def __init__(self, secret: str, client_factory: ClientFactory) -> None:
        self.secret = secret
        self.client_factory = client_factory
        self._handlers: dict[str, EventHandler] = {}
        self._error_handler: ErrorHandler = log_webhook_error

    def on(self, event_name: str, handler: EventHandler) -> None:
        """Register the handler for an event name, replacing any earlier one."""
        self._handlers[event_name] = handler

    def on_error(self, handler: ErrorHandler) -> None:
        """Register the fallback invoked for every verification or handling failure."""
        self._error_handler = handler

    def _report(self, error: Exception) -> None:
        try:
            self._error_handler(error)
        except Exception:
            logger.exception("Webhook error handler raised while reporting %r", error)

    def _parse(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        event_name = headers.get(EVENT_HEADER, "")
        delivery_id = headers.get(DELIVERY_HEADER, "")

        if not verify_signature(body, headers.get(SIGNATURE_HEADER, ""), self.secret):
            raise WebhookVerificationError(event_name or None, delivery_id or None)

        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise WebhookPayloadError(f"Invalid JSON body: {exc}") from exc
        if not isinstance(payload, dict):
            raise WebhookPayloadError("Webhook body must be a JSON object")

        installation = payload.get("installation") or {}
        return WebhookEvent(
            name=event_name,
            action=str(payload.get("action") or ""),
            delivery_id=delivery_id,
            installation_id=installation.get("id"),
            payload=payload,
        )

    async def dispatch(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        """Verify a delivery and run the handlers registered for it.

        Args:
            headers: Request headers. Lookups are case-insensitive.
            body: Raw request body bytes, exactly as signed by GitHub.

        Returns:
            The parsed event, whether or not any handler was registered for it.

        Raises:
            WebhookPayloadError: If a required header is missing or the body is not JSON.
            WebhookVerificationError: If the signature does not match.
            WebhookHandlerError: If a registered handler raised.
        """
        headers = {key.lower(): value for key, value in headers.items()}
        try:
            if not headers.get(EVENT_HEADER):
                raise WebhookPayloadError("Missing X-GitHub-Event header")
            event = self._parse(headers, body)
        except WebhookError as exc:
            self._report(exc)
            raise

        handlers = [
            self._handlers[name]
            for name in dict.fromkeys((event.name, event.qualified_name))
            if name in self._handlers
        ]
        if not handlers:
            logger.debug("No handler registered for %s", event.qualified_name)
            return event

        if event.installation_id is None:
            error = WebhookPayloadError(f"{event.qualified_name} delivery has no installation id")
            self._report(error)
            raise error

        client = self.client_factory(event.installation_id)
        for handler in handlers:
            try:
                await handler(client, event)
            except Exception as exc:
                error = WebhookHandlerError(event, exc)
                self._report(error)
                raise error from exc
        event.handled = True
        return event


def create_app(dispatcher: WebhookDispatcher, path: str = WEBHOOK_PATH) -> FastAPI:
    """Create a FastAPI application exposing the webhook endpoint.

    Args:
        dispatcher: A configured WebhookDispatcher.
        path: URL path GitHub delivers to.

    Returns:
        A FastAPI application with a single POST route.
    """
    app = FastAPI(title="pr-welcome webhook")

    @app.post(path)
    async def webhook(request: Request) -> Response:
        """Receive, verify and dispatch a GitHub webhook delivery."""
        body = await request.body()
        try:
            event = await dispatcher.dispatch(request.headers, body)
        except WebhookVerificationError:
            return Response(content="Invalid signature", status_code=403)
        except WebhookPayloadError as exc:
            return Response(content=str(exc), status_code=400)
        except WebhookHandlerError:
            return Response(content="Handler error", status_code=500)

        return Response(content="accepted" if event.handled else "ignored", status_code=200)

    return app
