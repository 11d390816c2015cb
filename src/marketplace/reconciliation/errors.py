"""Pipeline-level errors."""


class ReconciliationError(Exception):
    """The event cannot be turned into an order, no matter how often it is redelivered."""

    def __init__(self, message, payment_confirmation_id=None):
        super().__init__(message)
        self.payment_confirmation_id = payment_confirmation_id
