"""
Booking notification sink.

Confirmations fan out to the staff member who registered the job seeker:
an in-app notification row, an SMTP email and Slack (incoming webhook and/or
bot DM). Delivery is best-effort: every channel catches and logs its own
failure, and the dispatcher runs as a background task after the HTTP
response has been sent.
"""
import logging
import smtplib
import ssl
from datetime import date
from email.message import EmailMessage
from typing import Callable, Dict, Optional

import requests
from pydantic import BaseModel
from sqlalchemy.orm import Session
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app.core.config import NotificationSettings, settings
from app.core.dates import format_display_date, interview_type_label
from app.database import SessionLocal
from app.models.notification import Notification

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"


class BookingNotification(BaseModel):
    candidate_name: str
    company_name: str
    date: date
    start_time: str
    end_time: str
    interview_type: str
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    slack_user_id: Optional[str] = None
    job_seeker_id: Optional[str] = None

    @property
    def display_date(self) -> str:
        return format_display_date(self.date)

    @property
    def summary(self) -> str:
        return (
            f"{self.candidate_name} - {self.company_name} | {self.display_date} "
            f"{self.start_time}-{self.end_time} ({interview_type_label(self.interview_type)})"
        )


class NotificationService:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        config: Optional[NotificationSettings] = None,
    ):
        self.session_factory = session_factory
        self.config = config or settings.notifications

    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        link: str = None
    ) -> Notification:
        """
        Internal utility for creating notifications.
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            link=link
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    # --- Channels ---

    def send_in_app(self, notification: BookingNotification) -> bool:
        if notification.user_id is None:
            logger.info("In-app notification skipped: job seeker has no registering user")
            return False

        link = None
        if notification.job_seeker_id:
            link = f"/job-seekers/{notification.job_seeker_id}/schedule"

        # Runs after the request session is closed, so it needs its own
        db = self.session_factory()
        try:
            self.create_notification(
                db,
                user_id=notification.user_id,
                title="Interview confirmed",
                message=notification.summary,
                type="booking",
                link=link,
            )
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"In-app notification error: {e}", exc_info=True)
            return False
        finally:
            db.close()

    def send_email(self, notification: BookingNotification) -> bool:
        cfg = self.config
        if not (cfg.smtp_host and cfg.smtp_user and cfg.smtp_password):
            logger.info("Email notification skipped: SMTP is not configured")
            return False
        if not notification.user_email:
            logger.info("Email notification skipped: no recipient")
            return False

        message = EmailMessage()
        message["Subject"] = f"[Interview confirmed] {notification.candidate_name} - {notification.company_name}"
        message["From"] = cfg.email_from or cfg.smtp_user
        message["To"] = notification.user_email
        message.set_content(
            "An interview slot has been confirmed.\n\n"
            f"Candidate: {notification.candidate_name}\n"
            f"Company: {notification.company_name}\n"
            f"Date: {notification.display_date} {notification.start_time}-{notification.end_time}\n"
            f"Format: {interview_type_label(notification.interview_type)}\n"
        )

        try:
            if cfg.smtp_port == 465:
                with smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, context=ssl.create_default_context(),
                                      timeout=cfg.http_timeout) as server:
                    server.login(cfg.smtp_user, cfg.smtp_password)
                    server.send_message(message)
            else:
                with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.http_timeout) as server:
                    server.starttls(context=ssl.create_default_context())
                    server.login(cfg.smtp_user, cfg.smtp_password)
                    server.send_message(message)
            logger.info("Email notification sent", extra={"recipient": notification.user_email})
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email notification error: {e}")
            return False

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(requests.exceptions.RequestException),
        reraise=True
    )
    def _post_json(self, url: str, payload: dict, token: Optional[str] = None) -> requests.Response:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        response = requests.post(url, json=payload, headers=headers, timeout=self.config.http_timeout)
        response.raise_for_status()
        return response

    def _slack_payload(self, notification: BookingNotification) -> dict:
        return {
            "text": f"Interview confirmed: {notification.summary}",
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": "Interview confirmed", "emoji": True},
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Candidate*\n{notification.candidate_name}"},
                        {"type": "mrkdwn", "text": f"*Company*\n{notification.company_name}"},
                        {"type": "mrkdwn", "text": f"*Date*\n{notification.display_date} {notification.start_time}-{notification.end_time}"},
                        {"type": "mrkdwn", "text": f"*Format*\n{interview_type_label(notification.interview_type)}"},
                    ],
                },
            ],
        }

    def send_slack_webhook(self, notification: BookingNotification) -> bool:
        if not self.config.slack_webhook_url:
            logger.info("Slack webhook notification skipped: SLACK_WEBHOOK_URL not set")
            return False
        try:
            self._post_json(self.config.slack_webhook_url, self._slack_payload(notification))
            logger.info("Slack webhook notification sent")
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Slack webhook error: {e}")
            return False

    def send_slack_dm(self, notification: BookingNotification) -> bool:
        token = self.config.slack_bot_token
        if not token or not notification.slack_user_id:
            return False
        try:
            opened = self._post_json(
                f"{SLACK_API_URL}/conversations.open", {"users": notification.slack_user_id}, token
            ).json()
            if not opened.get("ok"):
                logger.error(f"Failed to open Slack DM channel: {opened.get('error')}")
                return False

            payload = self._slack_payload(notification)
            payload["channel"] = opened["channel"]["id"]
            posted = self._post_json(f"{SLACK_API_URL}/chat.postMessage", payload, token).json()
            if not posted.get("ok"):
                logger.error(f"Failed to send Slack DM: {posted.get('error')}")
                return False
            logger.info("Slack DM notification sent")
            return True
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            logger.error(f"Slack DM error: {e}")
            return False

    def send_booking_notifications(self, notification: BookingNotification) -> Dict[str, bool]:
        """Deliver on every channel; returns which channels succeeded."""
        return {
            "in_app": self.send_in_app(notification),
            "email": self.send_email(notification),
            "slack_webhook": self.send_slack_webhook(notification),
            "slack_dm": self.send_slack_dm(notification),
        }


def dispatch_booking_notifications(notifier: NotificationService, notification: BookingNotification):
    """
    Background-task entry point. A failed notification never affects the
    already-committed booking, so everything is logged and swallowed here.
    """
    try:
        results = notifier.send_booking_notifications(notification)
        logger.info("Booking notifications dispatched", extra={"channels": results})
    except Exception:
        logger.exception("Notification error (non-fatal)")


def get_notifier() -> NotificationService:
    return NotificationService()
