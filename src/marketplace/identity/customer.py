"""CustomerAccount aggregate — the retailer identity that owns orders.

An account is identified by its phone number OR its email address. Both are
unique at the storage layer so that two concurrent reconciliations for the
same first-time buyer cannot produce two accounts.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, String

from marketplace.domain import marketplace
from marketplace.identity.events import CustomerDetailsRefined, CustomerRegistered


class AccountRole(Enum):
    RETAILER = "retailer"
    WHOLESALER = "wholesaler"


@marketplace.aggregate
class CustomerAccount:
    """A buyer on the marketplace, looked up by phone first and email second."""

    first_name = String(required=True, max_length=100)
    last_name = String(max_length=100)
    email = String(max_length=254, unique=True)
    phone = String(max_length=20, unique=True)
    role = String(choices=AccountRole, default=AccountRole.RETAILER.value)
    created_at = DateTime()
    updated_at = DateTime()

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @classmethod
    def register(cls, first_name, last_name=None, email=None, phone=None, role=AccountRole.RETAILER.value):
        """Create a new account from whatever subset of details was declared."""
        now = datetime.now(UTC)
        account = cls(
            first_name=first_name,
            last_name=last_name or None,
            email=email or None,
            phone=phone or None,
            role=role,
            created_at=now,
            updated_at=now,
        )
        account.raise_(
            CustomerRegistered(
                customer_id=str(account.id),
                first_name=first_name,
                last_name=last_name or None,
                email=email or None,
                phone=phone or None,
                role=role,
                registered_at=now,
            )
        )
        return account

    def refine(self, first_name=None, last_name=None, email=None, phone=None):
        """Apply newer details in place. Returns True when anything changed."""
        changes = {}
        # A declared name replaces both parts
        if first_name:
            if first_name != self.first_name:
                changes["first_name"] = first_name
            if (last_name or None) != self.last_name:
                changes["last_name"] = last_name or None
        if email and email != self.email:
            changes["email"] = email
        if phone and phone != self.phone:
            changes["phone"] = phone

        if not changes:
            return False

        now = datetime.now(UTC)
        for attr, value in changes.items():
            setattr(self, attr, value)
        self.updated_at = now

        self.raise_(
            CustomerDetailsRefined(
                customer_id=str(self.id),
                first_name=self.first_name,
                last_name=self.last_name,
                email=self.email,
                phone=self.phone,
                refined_at=now,
            )
        )
        return True
