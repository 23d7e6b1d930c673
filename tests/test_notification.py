from datetime import date

import pytest
import requests
from tenacity import wait_none

from app.core.config import NotificationSettings
from app.models.notification import Notification
from app.services.notification import (
    BookingNotification,
    NotificationService,
    dispatch_booking_notifications,
)


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload or {"ok": True}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


def _config(**overrides):
    values = {
        "smtp_host": None,
        "smtp_port": 587,
        "smtp_user": None,
        "smtp_password": None,
        "email_from": None,
        "slack_webhook_url": None,
        "slack_bot_token": None,
    }
    values.update(overrides)
    return NotificationSettings(**values)


@pytest.fixture
def booking_notice(staff_user, job_seeker):
    return BookingNotification(
        candidate_name="Taro Yamada",
        company_name="Acme Corp",
        date=date(2024, 1, 15),
        start_time="09:00",
        end_time="10:00",
        interview_type="online",
        user_id=staff_user.id,
        user_email=staff_user.email,
        slack_user_id=staff_user.slack_user_id,
        job_seeker_id=job_seeker.id,
    )


def test_summary_reads_naturally(booking_notice):
    assert booking_notice.summary == "Taro Yamada - Acme Corp | Mon, Jan 15, 2024 09:00-10:00 (Online)"


def test_in_app_notification_is_stored(session_factory, db_session, booking_notice, staff_user, job_seeker):
    service = NotificationService(session_factory=session_factory, config=_config())

    assert service.send_in_app(booking_notice) is True

    stored = db_session.query(Notification).one()
    assert stored.user_id == staff_user.id
    assert stored.type == "booking"
    assert "Acme Corp" in stored.message
    assert stored.link == f"/job-seekers/{job_seeker.id}/schedule"


def test_in_app_skipped_without_user(session_factory, booking_notice):
    service = NotificationService(session_factory=session_factory, config=_config())
    assert service.send_in_app(booking_notice.model_copy(update={"user_id": None})) is False


def test_unconfigured_channels_are_skipped(session_factory, booking_notice, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no HTTP call expected")

    monkeypatch.setattr("app.services.notification.requests.post", fail)
    service = NotificationService(session_factory=session_factory, config=_config())

    results = service.send_booking_notifications(booking_notice)

    assert results == {"in_app": True, "email": False, "slack_webhook": False, "slack_dm": False}


def test_slack_webhook_posts_summary(session_factory, booking_notice, monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append((url, json, headers))
        return FakeResponse()

    monkeypatch.setattr("app.services.notification.requests.post", fake_post)
    service = NotificationService(
        session_factory=session_factory,
        config=_config(slack_webhook_url="https://hooks.slack.example/T000/B000/XXX"),
    )

    assert service.send_slack_webhook(booking_notice) is True
    url, payload, headers = calls[0]
    assert url == "https://hooks.slack.example/T000/B000/XXX"
    assert "Taro Yamada" in payload["text"]
    assert "Authorization" not in headers


def test_slack_webhook_retries_then_gives_up(session_factory, booking_notice, monkeypatch):
    attempts = []

    def flaky_post(url, json=None, headers=None, timeout=None):
        attempts.append(url)
        raise requests.exceptions.ConnectionError("unreachable")

    monkeypatch.setattr("app.services.notification.requests.post", flaky_post)
    monkeypatch.setattr(NotificationService._post_json.retry, "wait", wait_none())
    service = NotificationService(
        session_factory=session_factory,
        config=_config(slack_webhook_url="https://hooks.slack.example/T000/B000/XXX"),
    )

    assert service.send_slack_webhook(booking_notice) is False
    assert len(attempts) == 3


def test_slack_dm_opens_channel_and_posts(session_factory, booking_notice, monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append((url, json, headers))
        if url.endswith("conversations.open"):
            return FakeResponse({"ok": True, "channel": {"id": "D42"}})
        return FakeResponse({"ok": True})

    monkeypatch.setattr("app.services.notification.requests.post", fake_post)
    service = NotificationService(session_factory=session_factory, config=_config(slack_bot_token="xoxb-test"))

    assert service.send_slack_dm(booking_notice) is True
    assert calls[0][1] == {"users": "U123"}
    assert calls[1][1]["channel"] == "D42"
    assert calls[1][2]["Authorization"] == "Bearer xoxb-test"


def test_slack_dm_reports_api_error(session_factory, booking_notice, monkeypatch):
    monkeypatch.setattr(
        "app.services.notification.requests.post",
        lambda url, json=None, headers=None, timeout=None: FakeResponse({"ok": False, "error": "user_not_found"}),
    )
    service = NotificationService(session_factory=session_factory, config=_config(slack_bot_token="xoxb-test"))

    assert service.send_slack_dm(booking_notice) is False


def test_email_sent_over_starttls(session_factory, booking_notice, monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host, self.port = host, port

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self, context=None):
            pass

        def login(self, user, password):
            pass

        def send_message(self, message):
            sent.append(message)

    monkeypatch.setattr("app.services.notification.smtplib.SMTP", FakeSMTP)
    service = NotificationService(
        session_factory=session_factory,
        config=_config(smtp_host="smtp.example.com", smtp_user="bot@example.com", smtp_password="pw"),
    )

    assert service.send_email(booking_notice) is True
    assert sent[0]["To"] == "recruiter@example.com"
    assert "Acme Corp" in sent[0]["Subject"]


def test_dispatch_never_raises(booking_notice):
    class BrokenNotifier:
        def send_booking_notifications(self, notification):
            raise RuntimeError("provider down")

    dispatch_booking_notifications(BrokenNotifier(), booking_notice)
