"""Email channel port — abstract interface for email delivery providers."""

from abc import ABC, abstractmethod


class EmailPort(ABC):
    """Abstract interface for email dispatch adapters."""

    @abstractmethod
    def send_email(self, to: str, sender: str, subject: str, html: str) -> dict:
        """Send an HTML email.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
