import httpx
from fastapi import BackgroundTasks

from app.models import NotificationIntent
from app.services.notification_client import INTENTS_PATH, NotificationClient
from app.services.notifications import IntentType, NotificationEmitter, intent_payload


class _Response:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.text = "boom" if status_code >= 400 else ""
        self._request = httpx.Request("POST", "http://notify.local" + INTENTS_PATH)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                "error",
                request=self._request,
                response=httpx.Response(self.status_code, request=self._request, text=self.text),
            )


def test_client_posts_intent(monkeypatch):
    calls = []

    def _post(url, json, timeout):
        calls.append((url, json, timeout))
        return _Response()

    monkeypatch.setattr(httpx, "post", _post)
    client = NotificationClient(base_url="http://notify.local/", timeout=3)

    assert client.send_intent({"type": "membership_approved"}) is True
    assert calls == [
        ("http://notify.local/api/gym/v1/notification/intents", {"type": "membership_approved"}, 3)
    ]


def test_client_without_url_skips_delivery(monkeypatch):
    def _post(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(httpx, "post", _post)

    assert NotificationClient(base_url="").send_intent({"type": "x"}) is False


def test_client_reports_http_errors(monkeypatch):
    monkeypatch.setattr(httpx, "post", lambda url, json, timeout: _Response(502))

    assert NotificationClient(base_url="http://notify.local").send_intent({"type": "x"}) is False


def test_client_reports_connection_errors(monkeypatch):
    def _post(url, json, timeout):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr(httpx, "post", _post)

    assert NotificationClient(base_url="http://notify.local").send_intent({"type": "x"}) is False


def test_emitter_persists_and_dispatches(db_session, membership_factory, recording_client):
    membership = membership_factory()
    emitter = NotificationEmitter(db_session, client=recording_client)

    intent = emitter.emit(
        IntentType.MEMBERSHIP_APPROVED,
        membership.id,
        "Your membership is active.",
        recipient_user_id=membership.user_id,
    )
    db_session.commit()

    assert db_session.query(NotificationIntent).count() == 1
    assert emitter.dispatch() == 1
    assert recording_client.sent == [intent_payload(intent)]
    assert recording_client.sent[0]["membershipId"] == membership.id
    assert emitter.dispatch() == 0


def test_discarded_intents_are_not_sent(db_session, membership_factory, recording_client):
    membership = membership_factory()
    emitter = NotificationEmitter(db_session, client=recording_client)
    emitter.emit(IntentType.PAYMENT_SUBMITTED, membership.id, "Please verify.")

    emitter.discard()

    assert emitter.dispatch() == 0
    assert recording_client.sent == []


def test_dispatch_defers_to_background_tasks(db_session, membership_factory, recording_client):
    membership = membership_factory()
    emitter = NotificationEmitter(db_session, client=recording_client)
    emitter.emit(IntentType.PAYMENT_SUBMITTED, membership.id, "Please verify.")
    db_session.commit()
    tasks = BackgroundTasks()

    emitter.dispatch(tasks)

    assert recording_client.sent == []
    assert len(tasks.tasks) == 1
