"""Fake chat adapter — records sent messages for testing."""

from uuid import uuid4

from marketplace.notifications.channel.chat_port import ChatPort


class FakeChatAdapter(ChatPort):
    """Chat adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Chat delivery failed"
        self.raises: Exception | None = None

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Chat delivery failed",
        raises: Exception | None = None,
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raises = raises

    def send_message(self, to_address: str, text: str, credentials: dict) -> dict:
        if self.raises is not None:
            raise self.raises
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"chat-{uuid4().hex[:12]}"
        self.sent_messages.append(
            {
                "message_id": message_id,
                "to": to_address,
                "text": text,
                "account_sid": (credentials or {}).get("account_sid"),
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.should_succeed = True
        self.failure_reason = "Chat delivery failed"
        self.raises = None
