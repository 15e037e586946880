"""
Order emails via the Resend HTTP API.

Everything here is best effort: the order is already committed when these
run, so failures and timeouts are logged and swallowed.
"""
import asyncio
from html import escape
from typing import List, Optional, Sequence

import httpx

from ordering.config import get_settings
from ordering.models.order import Order, OrderStatus, PaymentMethod
from ordering.utils.helpers import format_huf, to_local
from ordering.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

STATUS_EMAILS = {
    OrderStatus.PREPARING: {
        "subject": "We accepted your order and started cooking",
        "heading": "Your order has been accepted!",
        "message": "We have started preparing your order. It will be ready soon.",
    },
    OrderStatus.READY: {
        "subject": "Your order is ready for pickup",
        "heading": "Your order is ready!",
        "message": "Your order is packed and waiting for you at the counter.",
    },
    OrderStatus.COMPLETED: {
        "subject": "Thank you for your order",
        "heading": "Thanks for ordering with us!",
        "message": "We hope you enjoyed it. See you next time!",
    },
}


class EmailService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self.api_url = api_url or settings.RESEND_API_URL
        self.sender = sender or settings.EMAIL_FROM
        self._transport = transport

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def send(
        self,
        to: Sequence[str],
        subject: str,
        html: str,
        text: Optional[str] = None,
        bcc: Optional[Sequence[str]] = None,
    ) -> str:
        """Send one message, returning the provider's message id."""
        if not self.is_available:
            raise RuntimeError("Email service not configured: RESEND_API_KEY is not set")

        payload = {
            "from": self.sender,
            "to": list(to),
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text
        if bcc:
            payload["bcc"] = list(bcc)

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        ) as client:
            response = await client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            return response.json().get("id", "")


# Singleton instance
email_service = EmailService()


# ──── Rendering ────

def _pickup_label(order: Order) -> str:
    if order.pickup_time is None:
        return "As soon as possible"
    return to_local(order.pickup_time).strftime("%Y-%m-%d %H:%M")


def _payment_label(order: Order) -> str:
    return "Cash" if order.payment_method == PaymentMethod.CASH else "Card"


def render_order_email(order: Order, lines: List[dict], heading: str, message: str) -> tuple[str, str]:
    """HTML and plain-text bodies. `lines` are dicts with name, qty, line_total_huf."""
    rows_html = "".join(
        f"<tr><td><strong>{escape(line['name'])}</strong> &times; {line['qty']}</td>"
        f"<td style=\"text-align: right;\">{format_huf(line['line_total_huf'])}</td></tr>"
        for line in lines
    )
    discount_html = ""
    if order.discount_huf:
        discount_html = (
            f"<tr><td>Coupon {escape(order.coupon_code or '')}</td>"
            f"<td style=\"text-align: right;\">-{format_huf(order.discount_huf)}</td></tr>"
        )

    html = f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>{escape(heading)}</h2>
        <p>Dear {escape(order.name)},</p>
        <p>{escape(message)}</p>
        <p><strong>Order code:</strong> {order.code}</p>
        <p><strong>Pickup:</strong> {_pickup_label(order)}</p>
        <p><strong>Payment:</strong> {_payment_label(order)} (on pickup)</p>
        <table style="width: 100%; border-collapse: collapse;">
          {rows_html}
          {discount_html}
          <tr><td><strong>Total</strong></td>
              <td style="text-align: right;"><strong>{format_huf(order.total_huf)}</strong></td></tr>
        </table>
        <p>{escape(settings.RESTAURANT_NAME)}</p>
      </div>
    """

    text_lines = [heading, "", message, "", f"Order code: {order.code}", f"Pickup: {_pickup_label(order)}", ""]
    text_lines += [f"{line['name']} x{line['qty']}: {format_huf(line['line_total_huf'])}" for line in lines]
    if order.discount_huf:
        text_lines.append(f"Coupon {order.coupon_code}: -{format_huf(order.discount_huf)}")
    text_lines.append(f"Total: {format_huf(order.total_huf)}")
    return html, "\n".join(text_lines)


# ──── Dispatch ────

async def _deliver(service: EmailService, description: str, **kwargs) -> bool:
    if not service.is_available:
        logger.info(f"Email service not configured, skipping {description}")
        return False
    try:
        await asyncio.wait_for(service.send(**kwargs), timeout=settings.NOTIFICATION_TIMEOUT_SECONDS)
        logger.info(f"Sent {description}")
        return True
    except asyncio.TimeoutError:
        logger.warning(f"Timed out sending {description}")
    except (httpx.HTTPError, RuntimeError) as e:
        logger.warning(f"Failed to send {description}: {e}")
    return False


async def send_order_confirmation(
    order: Order,
    lines: List[dict],
    service: Optional[EmailService] = None,
) -> bool:
    """Confirmation to the customer, admin in BCC."""
    service = service or email_service
    if not order.email:
        logger.info(f"No email address for order {order.code}, skipping confirmation")
        return False

    html, text = render_order_email(
        order,
        lines,
        heading="Thank you for your order!",
        message="We received your order. You will get another email when we start preparing it.",
    )
    bcc = [settings.ADMIN_EMAIL] if settings.ADMIN_EMAIL else None
    return await _deliver(
        service,
        f"confirmation for order {order.code}",
        to=[order.email],
        subject=f"{settings.RESTAURANT_NAME} - order confirmation #{order.code}",
        html=html,
        text=text,
        bcc=bcc,
    )


async def send_status_email(
    order: Order,
    lines: List[dict],
    status: OrderStatus,
    service: Optional[EmailService] = None,
) -> bool:
    service = service or email_service
    config = STATUS_EMAILS.get(status)
    if config is None:
        logger.debug(f"No email configured for status {status.value}")
        return False
    if not order.email:
        logger.info(f"No email address for order {order.code}, skipping status email")
        return False

    html, text = render_order_email(order, lines, config["heading"], config["message"])
    return await _deliver(
        service,
        f"{status.value} email for order {order.code}",
        to=[order.email],
        subject=f"{settings.RESTAURANT_NAME} - {config['subject']} #{order.code}",
        html=html,
        text=text,
    )
