"""Fake email adapter — records sent emails for testing."""

from uuid import uuid4

from marketplace.notifications.channel.email_port import EmailPort


class FakeEmailAdapter(EmailPort):
    """Email adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_emails: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"
        self.raises: Exception | None = None

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Email delivery failed",
        raises: Exception | None = None,
    ):
        """Configure the fake adapter behavior for testing.

        ``raises`` makes every send raise that exception, the way a provider
        SDK does on network errors.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raises = raises

    def send_email(self, to: str, sender: str, subject: str, html: str) -> dict:
        if self.raises is not None:
            raise self.raises
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"email-{uuid4().hex[:12]}"
        self.sent_emails.append(
            {
                "message_id": message_id,
                "to": to,
                "sender": sender,
                "subject": subject,
                "html": html,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear sent emails (useful between tests)."""
        self.sent_emails.clear()
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"
        self.raises = None
