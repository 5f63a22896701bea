"""Notification sender — one email per alert, via the Resend HTTP API.

Contract used by the alert evaluator:
    await sender.send(to, subject, body) -> {"status": "sent" | "skipped", ...}
    raises NotificationError on transport or provider failure.

"skipped" means nothing was attempted (no recipient/subject, or email is
not configured). It is not an error.
"""

from loguru import logger

from ..errors import NotificationError

RESEND_URL = "https://api.resend.com/emails"


class ResendEmailSender:
    provider = "resend"

    def __init__(self, api_key: str, from_addr: str, timeout: float = 15):
        self.api_key = api_key
        self.from_addr = from_addr
        self.timeout = timeout

    async def send(self, to: str, subject: str, body: str) -> dict:
        from ..http_client import http

        to = (to or "").strip()
        subject = (subject or "").strip()
        if not to or not subject:
            return {"status": "skipped", "reason": "missing_to_or_subject"}
        if not self.api_key or not self.from_addr:
            return {"status": "skipped", "reason": "email_not_configured"}

        try:
            r = await http.post(
                RESEND_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"from": self.from_addr, "to": [to], "subject": subject, "text": body},
                timeout=self.timeout,
            )
        except Exception as e:
            raise NotificationError(str(e) or "Failed to send email") from e

        if r.status_code >= 300:
            raise NotificationError(r.text[:500] or f"HTTP {r.status_code}")

        logger.info("Alert email sent to {} via {}", to, self.provider)
        return {"status": "sent", "provider": self.provider}


def get_notification_sender() -> ResendEmailSender:
    from ..config import settings

    return ResendEmailSender(settings.resend_api_key, settings.email_from)
