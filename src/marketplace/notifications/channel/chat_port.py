"""Chat channel port — abstract interface for messaging providers (WhatsApp and the like)."""

from abc import ABC, abstractmethod


class ChatPort(ABC):
    """Abstract interface for chat message adapters.

    Credentials are passed per call: each merchant brings its own messaging account.
    """

    @abstractmethod
    def send_message(self, to_address: str, text: str, credentials: dict) -> dict:
        """Send a plain-text message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
