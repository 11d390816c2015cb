"""Forced identity configuration — command and handler."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.identity.customer import CustomerAccount
from marketplace.identity.merchant import Merchant


@marketplace.command(part_of="Merchant")
class ConfigureForcedIdentity:
    merchant_id = Identifier(required=True)
    forced_customer_id = Identifier()


@marketplace.command_handler(part_of=Merchant)
class ForcedIdentityHandler:
    @handle(ConfigureForcedIdentity)
    def configure_forced_identity(self, command):
        merchant_repo = current_domain.repository_for(Merchant)
        merchant = merchant_repo.get(command.merchant_id)

        if command.forced_customer_id:
            # Raises ObjectNotFoundError for an unknown account
            current_domain.repository_for(CustomerAccount).get(command.forced_customer_id)

        merchant.force_identity(command.forced_customer_id or None)
        merchant_repo.add(merchant)
        return str(merchant.id)
