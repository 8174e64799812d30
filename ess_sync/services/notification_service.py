from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from ess_sync.models.sync_job import SyncResult


class NotificationService:
    """Posts scheduled-sync outcomes to a webhook.

    Delivery problems are logged and never affect the sync job itself.
    """

    def __init__(
        self,
        webhook_url: str = "",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self._timeout = timeout
        self._client = client
        self._logger = logger or logging.getLogger(__name__)

    def notify_sync_completed(self, result: SyncResult) -> bool:
        return self._send(
            {
                "event": "sync.completed",
                "result": result.to_dict(),
            }
        )

    def notify_sync_failed(self, job_id: int | None, message: str) -> bool:
        return self._send(
            {
                "event": "sync.failed",
                "jobId": job_id,
                "message": message,
            }
        )

    def _send(self, payload: dict[str, Any]) -> bool:
        payload["sentAt"] = datetime.now(tz=timezone.utc).isoformat()
        if not self.webhook_url:
            self._logger.info("Notification (no webhook configured): %s", payload)
            return False

        try:
            if self._client is not None:
                response = self._client.post(self.webhook_url, json=payload, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self._logger.error("Failed to deliver %s notification: %s", payload["event"], exc)
            return False

        self._logger.info("Delivered %s notification", payload["event"])
        return True
