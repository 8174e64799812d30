from __future__ import annotations

import json

import httpx

from ess_sync.models.sync_job import SyncResult
from ess_sync.services.notification_service import NotificationService

WEBHOOK = "https://hooks.example.mn/ess-sync"


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_completed_notification_posts_result() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    service = NotificationService(WEBHOOK, client=_client(handler))
    result = SyncResult(7, True, 10, 9, 1, ["Failed to sync employee E0003: First name is required"], 1200)

    assert service.notify_sync_completed(result) is True

    body = json.loads(seen[0].content)
    assert str(seen[0].url) == WEBHOOK
    assert body["event"] == "sync.completed"
    assert body["result"]["jobId"] == 7
    assert body["result"]["recordsFailed"] == 1
    assert "sentAt" in body


def test_failed_notification_posts_message() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    service = NotificationService(WEBHOOK, client=_client(handler))

    assert service.notify_sync_failed(3, "connection to EDM lost") is True
    assert seen[0]["event"] == "sync.failed"
    assert seen[0]["jobId"] == 3
    assert seen[0]["message"] == "connection to EDM lost"


def test_without_webhook_nothing_is_sent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    service = NotificationService("", client=_client(handler))

    assert service.notify_sync_failed(None, "boom") is False


def test_delivery_errors_are_not_raised() -> None:
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert NotificationService(WEBHOOK, client=_client(server_error)).notify_sync_failed(1, "x") is False
    assert NotificationService(WEBHOOK, client=_client(unreachable)).notify_sync_failed(1, "x") is False
