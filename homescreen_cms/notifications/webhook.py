"""Webhook notification sender — tells mobile clients a layout was saved.

Posts the LAYOUT_SAVED event as JSON with a human-readable summary line.
"""

from datetime import datetime, timezone
from typing import Optional

import httpx

from ..utils.logging import get_logger

logger = get_logger("notifications.webhook")

LAYOUT_SAVED_EVENT = "LAYOUT_SAVED"

# Notification scope when both segment lists were saved together
ALL_SEGMENTS = "ALL"


class WebhookSender:
    """Sends notifications via HTTP webhooks as a raw JSON POST."""

    def __init__(self, timeout: float = 10.0):
        self._timeout = timeout

    async def send(
        self, url: str, payload: dict, headers: dict | None = None
    ) -> bool:
        """Send a notification payload to a webhook URL.

        Args:
            url: The webhook endpoint URL.
            payload: The notification data to send.
            headers: Optional additional HTTP headers.

        Returns:
            True if the webhook responded successfully, False otherwise.
        """
        send_headers = {"Content-Type": "application/json"}
        if headers:
            send_headers.update(headers)

        body = self._format_payload(payload)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=body, headers=send_headers)
                response.raise_for_status()
                logger.info("webhook_sent", url=url, status=response.status_code)
                return True
        except httpx.HTTPStatusError as exc:
            logger.error(
                "webhook_http_error",
                url=url,
                status=exc.response.status_code,
                body=exc.response.text[:500],
            )
            return False
        except httpx.HTTPError as exc:
            logger.error("webhook_send_error", url=url, error=str(exc))
            return False

    def _format_payload(self, payload: dict) -> dict:
        return {
            "text": self._build_message_text(payload),
            **payload,
        }

    def _build_message_text(self, payload: dict) -> str:
        event = payload.get("event", "notification")
        parts = [f"[HOMESCREEN CMS] {event}"]
        if payload.get("screenId") is not None:
            parts.append(f"Screen: {payload['screenId']} (version {payload.get('layoutVersion')})")
        if payload.get("userType"):
            parts.append(f"Segment: {payload['userType']}")
        if payload.get("savedAt"):
            parts.append(f"Time: {payload['savedAt']}")
        return "\n".join(parts)


class LayoutNotifier:
    """Posts a LAYOUT_SAVED event after a successful layout save."""

    def __init__(self, url: Optional[str] = None, sender: Optional[WebhookSender] = None):
        self._url = url
        self._sender = sender or WebhookSender()

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def build_payload(
        self,
        screen_id: Optional[int] = None,
        layout_version: Optional[int] = None,
        user_type: Optional[str] = None,
    ) -> dict:
        now = datetime.now(timezone.utc)
        return {
            "event": LAYOUT_SAVED_EVENT,
            "userType": user_type or ALL_SEGMENTS,
            "screenId": screen_id,
            "layoutVersion": layout_version,
            "timestamp": int(now.timestamp() * 1000),
            "savedAt": now.isoformat(),
        }

    async def notify_layout_saved(
        self,
        screen_id: Optional[int] = None,
        layout_version: Optional[int] = None,
        user_type: Optional[str] = None,
    ) -> bool:
        """Deliver the event. Never raises; a failed delivery returns False."""
        if not self._url:
            logger.warning("layout_webhook_not_configured", screen_id=screen_id)
            return False

        payload = self.build_payload(screen_id, layout_version, user_type)
        delivered = await self._sender.send(self._url, payload)
        if delivered:
            logger.info("layout_webhook_delivered", screen_id=screen_id, layout_version=layout_version)
        else:
            logger.warning("layout_webhook_failed", screen_id=screen_id, layout_version=layout_version)
        return delivered
