"""Customer identity resolution — find or create the account that owns an order.

Rules, first match wins:

0. The merchant's forced identity, when configured and the target exists.
1. An account with the declared phone number (normalized).
2. An account with the declared email address (case-insensitive).
3. A new retailer account built from whatever was declared.

A matched account is refined with the declared details. An email that
already belongs to a different account is never moved; the phone match
keeps its own email and the conflict is logged.
"""

import structlog

from marketplace.identity.customer import AccountRole, CustomerAccount
from marketplace.identity.phone import normalize_phone, split_name
from marketplace.reconciliation.persistence import DuplicateCustomerError, ReconciliationStore

logger = structlog.get_logger(__name__)


class CustomerIdentityResolver:
    def __init__(self, store: ReconciliationStore, default_country_code: str = "+44"):
        self.store = store
        self.default_country_code = default_country_code

    def resolve(self, merchant_id, name=None, email=None, phone=None) -> CustomerAccount:
        forced = self._forced_identity(merchant_id)
        if forced is not None:
            return forced

        phone = normalize_phone(phone, self.default_country_code)
        email = email.strip().lower() if email and email.strip() else None
        first_name, last_name = split_name(name) if name else (None, None)

        if phone is None and email is None:
            logger.warning(
                "No phone or email declared, customer may be duplicated",
                merchant_id=merchant_id,
                customer_name=name,
            )

        account = self._lookup(phone, email)
        if account is not None:
            return self._refine(account, first_name, last_name, email, phone)

        try:
            account = self.store.create_customer(
                {
                    "first_name": first_name or "Customer",
                    "last_name": last_name,
                    "email": email,
                    "phone": phone,
                    "role": AccountRole.RETAILER.value,
                }
            )
        except DuplicateCustomerError as exc:
            # Another run registered the same person first
            account = self._lookup(phone, email)
            if account is None:
                raise
            logger.info(
                "Customer registered concurrently, using existing account",
                customer_id=str(account.id),
                conflicting_fields=sorted(exc.fields),
            )
            return self._refine(account, first_name, last_name, email, phone)

        logger.info("Registered new customer", customer_id=str(account.id), merchant_id=merchant_id)
        return account

    def _forced_identity(self, merchant_id):
        merchant = self.store.get_merchant(merchant_id)
        if merchant is None or not merchant.forced_customer_id:
            return None

        account = self.store.get_customer(merchant.forced_customer_id)
        if account is None:
            logger.error(
                "Forced identity target missing, falling back to normal resolution",
                merchant_id=merchant_id,
                forced_customer_id=str(merchant.forced_customer_id),
            )
            return None

        logger.info(
            "Using merchant's forced customer identity",
            merchant_id=merchant_id,
            customer_id=str(account.id),
        )
        return account

    def _lookup(self, phone, email):
        if phone:
            account = self.store.get_customer_by_phone(phone)
            if account is not None:
                return account
        if email:
            return self.store.get_customer_by_email(email)
        return None

    def _refine(self, account, first_name, last_name, email, phone):
        fields = {}
        if first_name and (first_name != account.first_name or (last_name or None) != account.last_name):
            fields["first_name"] = first_name
            fields["last_name"] = last_name
        if phone and phone != account.phone:
            fields["phone"] = phone
        if email and email != account.email:
            owner = self.store.get_customer_by_email(email)
            if owner is not None and str(owner.id) != str(account.id):
                logger.warning(
                    "Declared email belongs to another customer, keeping existing email",
                    customer_id=str(account.id),
                    email_owner_id=str(owner.id),
                )
            else:
                fields["email"] = email

        if not fields:
            return account

        try:
            if set(fields) == {"phone"}:
                return self.store.update_customer_phone(account.id, phone)
            return self.store.update_customer(account.id, fields)
        except DuplicateCustomerError as exc:
            logger.warning(
                "Could not refine customer details",
                customer_id=str(account.id),
                conflicting_fields=sorted(exc.fields),
            )
            return self.store.get_customer(account.id) or account
