# src/notifications/providers.py

"""Notification channels: LINE Messaging API push and SMTP email."""

import asyncio
import html
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any

from curl_cffi.requests import AsyncSession

from src.config.settings import Settings

logger = logging.getLogger("refurb_tracker.notify")


@dataclass
class SendResult:
    success: bool
    provider_id: str
    address: str = ""
    error: str | None = None


class NotificationProvider(ABC):
    """A single delivery channel.

    Providers start disabled; :meth:`initialize` enables them when the
    supplied config passes :meth:`validate_config`.
    """

    name: str = ""

    def __init__(self) -> None:
        self.enabled: bool = False

    @abstractmethod
    def validate_config(self, config: dict[str, Any]) -> list[str]:
        """Return a list of problems; empty means the config is usable."""
        ...

    @abstractmethod
    def _configure(self, config: dict[str, Any]) -> None:
        ...

    def initialize(self, config: dict[str, Any]) -> bool:
        errors = self.validate_config(config)
        if errors:
            logger.warning(
                "%s provider disabled: %s", self.name, ", ".join(errors)
            )
            self.enabled = False
            return False
        self._configure(config)
        self.enabled = True
        logger.info("%s provider initialised", self.name)
        return True

    @abstractmethod
    async def send(self, address: str, message: str) -> SendResult:
        ...

    async def reply(self, reply_token: str, message: str) -> SendResult:
        """Answer a conversational message; unsupported by default."""
        return SendResult(
            success=False,
            provider_id=self.name,
            error=f"{self.name} does not support replies",
        )

    def _failure(self, address: str, error: str) -> SendResult:
        return SendResult(
            success=False, provider_id=self.name, address=address, error=error
        )


class LineNotificationProvider(NotificationProvider):
    """Text messages through the LINE Messaging API."""

    name = "line"

    def __init__(
        self,
        api_base: str = Settings.LINE_API_BASE,
        session: Any | None = None,
    ) -> None:
        super().__init__()
        self.api_base = api_base.rstrip("/")
        self._token = ""
        self._session = session

    def validate_config(self, config: dict[str, Any]) -> list[str]:
        errors = []
        if not config.get("channel_access_token"):
            errors.append("missing channel_access_token")
        if not config.get("channel_secret"):
            errors.append("missing channel_secret")
        return errors

    def _configure(self, config: dict[str, Any]) -> None:
        self._token = config["channel_access_token"]

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> Any:
        url = f"{self.api_base}/{endpoint}"
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }
        if self._session is not None:
            return await self._session.post(
                url, json=payload, headers=headers, timeout=Settings.PAGE_TIMEOUT
            )
        async with AsyncSession() as session:
            return await session.post(
                url, json=payload, headers=headers, timeout=Settings.PAGE_TIMEOUT
            )

    async def _deliver(
        self, endpoint: str, target_field: str, target: str, message: str,
    ) -> SendResult:
        if not self.enabled:
            return self._failure(target, "provider not initialised")
        payload = {
            target_field: target,
            "messages": [{"type": "text", "text": message}],
        }
        try:
            resp = await self._post(endpoint, payload)
        except Exception as exc:
            logger.error("LINE %s failed: %s", endpoint, exc)
            return self._failure(target, str(exc))
        if resp.status_code != 200:
            logger.error(
                "LINE %s returned HTTP %s: %s",
                endpoint,
                resp.status_code,
                resp.text[:200],
            )
            return self._failure(target, f"HTTP {resp.status_code}")
        return SendResult(success=True, provider_id=self.name, address=target)

    async def send(self, address: str, message: str) -> SendResult:
        return await self._deliver("push", "to", address, message)

    async def reply(self, reply_token: str, message: str) -> SendResult:
        return await self._deliver("reply", "replyToken", reply_token, message)


class EmailNotificationProvider(NotificationProvider):
    """Plain-text + HTML mail over SMTP (STARTTLS on 587, SSL otherwise)."""

    name = "email"

    def __init__(self, subject: str = Settings.EMAIL_SUBJECT) -> None:
        super().__init__()
        self.subject = subject
        self._smtp: dict[str, Any] = {}

    def validate_config(self, config: dict[str, Any]) -> list[str]:
        return [
            f"missing {field}"
            for field in ("host", "port", "user", "password")
            if not config.get(field)
        ]

    def _configure(self, config: dict[str, Any]) -> None:
        self._smtp = {
            "host": config["host"],
            "port": int(config["port"]),
            "user": config["user"],
            "password": config["password"],
            "sender": config.get("sender") or config["user"],
        }

    def build_message(self, address: str, message: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = self.subject
        msg["From"] = self._smtp.get("sender", "")
        msg["To"] = address
        msg.set_content(message)
        body = html.escape(message).replace("\n", "<br>")
        msg.add_alternative(
            "<html><body>"
            f"<h3>{html.escape(self.subject)}</h3>"
            f"<div>{body}</div>"
            "</body></html>",
            subtype="html",
        )
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        host, port = self._smtp["host"], self._smtp["port"]
        context = ssl.create_default_context()
        if port == 587:
            with smtplib.SMTP(host, port, timeout=20) as smtp:
                smtp.ehlo()
                smtp.starttls(context=context)
                smtp.login(self._smtp["user"], self._smtp["password"])
                smtp.send_message(msg)
        else:
            with smtplib.SMTP_SSL(
                host, port, context=context, timeout=20
            ) as smtp:
                smtp.login(self._smtp["user"], self._smtp["password"])
                smtp.send_message(msg)

    async def send(self, address: str, message: str) -> SendResult:
        if not self.enabled:
            return self._failure(address, "provider not initialised")
        msg = self.build_message(address, message)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email to %s failed: %s", address, exc)
            return self._failure(address, str(exc))
        logger.info("Email sent to %s", address)
        return SendResult(success=True, provider_id=self.name, address=address)
