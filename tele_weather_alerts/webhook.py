"""Tomorrow.io push webhook: signature check and re-evaluation dispatch."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any

from .errors import ConfigurationError, WebhookPayloadError, WebhookSignatureError
from .jobs import AlertJobQueue
from .locations import describe, locations_match, parse_location
from .store import AlertStore

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-tomorrow-signature"
EVENT_TYPES = frozenset({"weather_update", "alert_trigger"})


def canonical_body(payload: dict[str, Any] | str | bytes) -> bytes:
    """Bytes the provider signs: the raw body, or compact JSON of a mapping.

    Re-serializing a parsed body is not byte-exact (``37.70`` comes back as
    ``37.7``), so transports should pass the raw request body as bytes or str.
    """
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def sign(secret: str, payload: dict[str, Any] | str | bytes) -> str:
    return hmac.new(
        secret.encode("utf-8"), canonical_body(payload), hashlib.sha256
    ).hexdigest()


def verify_signature(
    signature: str | None, secret: str, payload: dict[str, Any] | str | bytes
) -> bool:
    """Check a ``sha256=<hex>`` or bare-hex HMAC-SHA256 signature."""
    if not signature or not secret:
        return False
    provided = signature.strip()
    if provided.lower().startswith("sha256="):
        provided = provided[len("sha256=") :]
    expected = sign(secret, payload)
    return hmac.compare_digest(provided.lower().encode(), expected.encode())


def _decode(payload: dict[str, Any] | str | bytes) -> dict[str, Any]:
    if isinstance(payload, dict):
        return payload
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise WebhookPayloadError(f"Webhook body is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise WebhookPayloadError("Webhook body must be a JSON object")
    return data


class WebhookProcessor:
    """Transport-agnostic handler for provider push events.

    When a secret is configured every request must carry a valid signature;
    otherwise signatures are not checked.
    """

    def __init__(
        self, store: AlertStore, queue: AlertJobQueue, secret: str | None = None
    ) -> None:
        self.store = store
        self.queue = queue
        self.secret = secret or None

    async def handle(
        self, payload: dict[str, Any] | str | bytes, signature: str | None = None
    ) -> list[str]:
        """Verify, validate and dispatch one webhook.

        ``payload`` should be the raw request body; signatures are checked
        over exactly those bytes.

        Returns the ids of the alerts queued for re-evaluation.

        Raises:
            WebhookSignatureError: secret configured and signature invalid.
            WebhookPayloadError: body is not an event object.
        """
        if self.secret and not verify_signature(signature, self.secret, payload):
            logger.error("Invalid webhook signature")
            raise WebhookSignatureError("Invalid webhook signature")

        data = _decode(payload)
        logger.info("Received webhook: %s", data)
        event_type = data.get("eventType")
        if not event_type:
            raise WebhookPayloadError("Invalid webhook payload")
        if event_type not in EVENT_TYPES:
            logger.warning("Unknown event type: %s", event_type)
            return []

        try:
            location = parse_location(data.get("location"))
        except ConfigurationError as e:
            raise WebhookPayloadError(f"Invalid webhook location: {e}") from e

        logger.info("Processing %s for location %s", event_type, describe(location))
        matched = [
            alert.id
            for alert in await self.store.find_active()
            if locations_match(alert.location, location)
        ]
        logger.info("Found %d alerts matching this location", len(matched))
        for alert_id in matched:
            self.queue.enqueue_evaluate(alert_id)
        return matched
