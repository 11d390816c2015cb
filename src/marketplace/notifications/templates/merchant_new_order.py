"""New-order alerts for the merchant, by email and by chat message."""

from html import escape

from marketplace.notifications.notification import NotificationChannel, NotificationType


class MerchantNewOrderEmailTemplate:
    notification_type = NotificationType.MERCHANT_NEW_ORDER.value
    channel = NotificationChannel.EMAIL.value

    @staticmethod
    def render(context: dict) -> dict:
        symbol = context.get("currency_symbol", "£")
        order_number = context.get("order_number", "N/A")
        rows = "".join(
            f"<li>{escape(item['product_name'])} x {item['quantity']} ({item['selling_type']})</li>"
            for item in context.get("items", [])
        )
        fulfillment = (
            f"Delivery ({escape(context.get('carrier_name') or 'carrier not set')})"
            if context.get("fulfillment_type") == "delivery"
            else "Customer pickup"
        )
        return {
            "subject": f"New order {order_number} - {symbol}{context.get('total', 0.0):.2f}",
            "body": (
                f"<h2>New order {order_number}</h2>"
                f"<p>Customer: {escape(context.get('customer_name', 'Customer'))}"
                f" ({escape(context.get('customer_email') or 'no email')},"
                f" {escape(context.get('customer_phone') or 'no phone')})</p>"
                f"<ul>{rows}</ul>"
                f"<p>Fulfillment: {fulfillment}</p>"
                f"<p>Order total: {symbol}{context.get('total', 0.0):.2f}</p>"
                f"<p>Platform fee: {symbol}{context.get('platform_fee', 0.0):.2f}</p>"
            ),
        }


class MerchantNewOrderChatTemplate:
    notification_type = NotificationType.MERCHANT_NEW_ORDER.value
    channel = NotificationChannel.CHAT.value

    @staticmethod
    def render(context: dict) -> dict:
        symbol = context.get("currency_symbol", "£")
        lines = "\n".join(
            f"- {item['product_name']} x {item['quantity']}" for item in context.get("items", [])
        )
        return {
            "subject": None,
            "body": (
                f"New order {context.get('order_number', 'N/A')} from "
                f"{context.get('customer_name', 'Customer')}\n"
                f"{lines}\n"
                f"Total: {symbol}{context.get('total', 0.0):.2f}"
            ),
        }
