"""Order confirmation template — emailed to the customer once the order is recorded."""

from html import escape

from marketplace.notifications.notification import NotificationChannel, NotificationType


class OrderConfirmationTemplate:
    notification_type = NotificationType.ORDER_CONFIRMATION.value
    channel = NotificationChannel.EMAIL.value

    @staticmethod
    def render(context: dict) -> dict:
        symbol = context.get("currency_symbol", "£")
        order_number = context.get("order_number", "N/A")
        merchant_name = context.get("merchant_name", "your supplier")
        rows = "".join(
            f"<tr><td>{escape(item['product_name'])}</td><td>{item['quantity']}</td>"
            f"<td>{symbol}{item['line_total']:.2f}</td></tr>"
            for item in context.get("items", [])
        )
        if context.get("fulfillment_type") == "delivery":
            fulfillment = (
                f"<p>Delivery via {escape(context.get('carrier_name') or 'courier')}: "
                f"{symbol}{context.get('delivery_cost', 0.0):.2f}</p>"
            )
        else:
            fulfillment = f"<p>Your order will be ready for collection from {escape(merchant_name)}.</p>"
        return {
            "subject": f"Order {order_number} confirmed - {merchant_name}",
            "body": (
                f"<h2>Thank you for your order, {escape(context.get('customer_name', 'Customer'))}!</h2>"
                f"<p>Order number: <strong>{order_number}</strong></p>"
                f"<table><tr><th>Product</th><th>Qty</th><th>Total</th></tr>{rows}</table>"
                f"<p>Subtotal: {symbol}{context.get('subtotal', 0.0):.2f}</p>"
                f"<p>Transaction fee: {symbol}{context.get('customer_fee', 0.0):.2f}</p>"
                f"{fulfillment}"
                f"<p><strong>Total paid: {symbol}{context.get('total', 0.0):.2f}</strong></p>"
            ),
        }
