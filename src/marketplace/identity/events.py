"""Domain events for customer accounts and merchant settings."""

from protean.fields import DateTime, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="CustomerAccount")
class CustomerRegistered:
    """A new retailer account was created while reconciling an order."""

    __version__ = 1

    customer_id = Identifier(required=True)
    first_name = String(required=True)
    last_name = String()
    email = String()
    phone = String()
    role = String(required=True)
    registered_at = DateTime(required=True)


@marketplace.event(part_of="CustomerAccount")
class CustomerDetailsRefined:
    """An existing account picked up newer name, phone or email details."""

    __version__ = 1

    customer_id = Identifier(required=True)
    first_name = String()
    last_name = String()
    email = String()
    phone = String()
    refined_at = DateTime(required=True)


@marketplace.event(part_of="Merchant")
class ForcedIdentityConfigured:
    """A merchant's forced customer identity was set or cleared."""

    __version__ = 1

    merchant_id = Identifier(required=True)
    forced_customer_id = Identifier()
    configured_at = DateTime(required=True)
