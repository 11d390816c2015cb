"""Merchant aggregate — the wholesaler selling through the marketplace.

Besides contact details, a merchant carries two pieces of configuration the
reconciliation pipeline reads:

- chat credentials, used for new-order alerts over the messaging channel;
- ``forced_customer_id``, a per-merchant identity policy that routes every
  order placed with this merchant to one fixed customer account.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String

from marketplace.domain import marketplace
from marketplace.identity.events import ForcedIdentityConfigured


@marketplace.aggregate
class Merchant:
    business_name = String(max_length=200)
    contact_name = String(max_length=200)
    email = String(max_length=254)
    business_phone = String(max_length=20)
    preferred_currency = String(max_length=3, default="GBP")

    # Messaging channel credentials
    chat_account_sid = String(max_length=100)
    chat_auth_token = String(max_length=100)
    chat_phone_number = String(max_length=20)

    forced_customer_id = Identifier()

    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        business_name=None,
        contact_name=None,
        email=None,
        business_phone=None,
        preferred_currency="GBP",
        chat_account_sid=None,
        chat_auth_token=None,
        chat_phone_number=None,
        id=None,
    ):
        now = datetime.now(UTC)
        kwargs = {}
        if id is not None:
            kwargs["id"] = id
        return cls(
            business_name=business_name,
            contact_name=contact_name,
            email=email,
            business_phone=business_phone,
            preferred_currency=preferred_currency,
            chat_account_sid=chat_account_sid,
            chat_auth_token=chat_auth_token,
            chat_phone_number=chat_phone_number,
            created_at=now,
            updated_at=now,
            **kwargs,
        )

    @property
    def display_name(self) -> str:
        return self.business_name or self.contact_name or "Merchant"

    @property
    def currency_symbol(self) -> str:
        return "£" if (self.preferred_currency or "GBP").upper() == "GBP" else "$"

    @property
    def order_number_prefix(self) -> str:
        letters = "".join(ch for ch in (self.business_name or "") if ch.isalpha())
        return letters[:3].upper() if letters else "ORD"

    @property
    def chat_credentials(self) -> dict | None:
        """Credentials for the chat channel, or None when not fully configured."""
        if not (self.chat_account_sid and self.chat_auth_token):
            return None
        return {
            "account_sid": self.chat_account_sid,
            "auth_token": self.chat_auth_token,
            "from_number": self.chat_phone_number,
        }

    @property
    def chat_address(self) -> str | None:
        return self.business_phone or self.chat_phone_number

    def force_identity(self, customer_id):
        """Route every future order to ``customer_id``. None clears the policy."""
        if customer_id is not None and str(customer_id) == str(self.id):
            raise ValidationError({"forced_customer_id": ["A merchant cannot be its own customer"]})

        now = datetime.now(UTC)
        self.forced_customer_id = customer_id
        self.updated_at = now

        self.raise_(
            ForcedIdentityConfigured(
                merchant_id=str(self.id),
                forced_customer_id=str(customer_id) if customer_id is not None else None,
                configured_at=now,
            )
        )
