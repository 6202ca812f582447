"""Transactional email over SMTP (password reset links, contact form relay)."""

from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from lms_platform.config import Config
from lms_platform.errors import UpstreamServiceError


def _debug(msg: str) -> None:
    print(f"[mail] {msg}")


class Mailer:
    def __init__(self, cfg: Config):
        self._host = cfg.SMTP_HOST
        self._port = int(cfg.SMTP_PORT)
        self._username = cfg.SMTP_USERNAME
        self._password = cfg.SMTP_PASSWORD
        self._use_ssl = cfg.SMTP_USE_SSL
        self.sender = cfg.SMTP_FROM

    @property
    def enabled(self) -> bool:
        return bool(self._username and self._password)

    def build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(html_body, "html"))
        return message

    def send(self, to: str, subject: str, html_body: str) -> None:
        if not self.enabled:
            raise UpstreamServiceError("Email is not configured")

        message = self.build_message(to, subject, html_body)
        try:
            if self._use_ssl:
                with smtplib.SMTP_SSL(self._host, self._port, timeout=30) as server:
                    server.login(self._username, self._password)
                    server.send_message(message)
            else:
                with smtplib.SMTP(self._host, self._port, timeout=30) as server:
                    server.starttls()
                    server.login(self._username, self._password)
                    server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            _debug(f"send to {to} failed: {e}")
            raise UpstreamServiceError(f"Email could not be sent: {e}") from e

        _debug(f"sent '{subject}' to {to}")
