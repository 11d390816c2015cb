"""Template registry — maps (notification type, channel) to template classes."""

from marketplace.notifications.templates.merchant_new_order import (
    MerchantNewOrderChatTemplate,
    MerchantNewOrderEmailTemplate,
)
from marketplace.notifications.templates.order_confirmation import OrderConfirmationTemplate

TEMPLATE_REGISTRY: dict[tuple[str, str], type] = {
    (t.notification_type, t.channel): t
    for t in (OrderConfirmationTemplate, MerchantNewOrderEmailTemplate, MerchantNewOrderChatTemplate)
}


def get_template(notification_type: str, channel: str):
    template_cls = TEMPLATE_REGISTRY.get((notification_type, channel))
    if template_cls is None:
        raise ValueError(f"No template registered for {notification_type} over {channel}")
    return template_cls
