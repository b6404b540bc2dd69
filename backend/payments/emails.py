"""Customer notification emails for payments"""
import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def send_payment_confirmation_email(order_number, customer_email, customer_name, amount,
                                    order_type='regular', is_guest=False):
    """
    Email a payment receipt. Failures are logged and never raised.
    """
    if not customer_email:
        logger.warning(f"No customer email for paid order {order_number}; confirmation not sent")
        return False

    kind = 'custom tailoring order' if order_type == 'measurement' else 'order'
    lines = [
        f"Hello {customer_name or 'Valued Customer'},",
        '',
        f"We have received your payment of NGN {amount:,.2f} for {kind} {order_number}.",
        f"Track your order any time at {settings.APP_URL}/track-order?orderNumber={order_number}",
    ]
    if is_guest:
        lines.append('Keep your order number safe; you will need it to track this order.')
    lines += ['', 'Thank you for shopping with us.']

    try:
        send_mail(
            subject=f"Payment confirmed - {order_number}",
            message='\n'.join(lines),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[customer_email],
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Failed to send payment confirmation for {order_number}: {str(e)}")
        return False
    logger.info(f"Payment confirmation email sent for {order_number}")
    return True
