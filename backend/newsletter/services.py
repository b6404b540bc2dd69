import logging

from django.conf import settings
from django.core.mail import EmailMessage
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ServiceError
from .models import Subscriber

logger = logging.getLogger(__name__)


def subscribe(email, consent, source='website', user=None):
    """
    Subscribe an email address.

    Returns (subscriber, created). An active subscription is returned as is;
    an inactive one is reactivated with fresh consent.
    """
    if not consent:
        raise ServiceError('Consent is required to subscribe to the newsletter.')

    email = email.strip().lower()
    now = timezone.now()
    subscriber = Subscriber.objects.filter(email=email).first()
    if subscriber is not None:
        if subscriber.is_active:
            return subscriber, False
        subscriber.is_active = True
        subscriber.consent = True
        subscriber.consent_date = now
        subscriber.unsubscribed_at = None
        subscriber.source = source or subscriber.source
        if user is not None and subscriber.user_id is None:
            subscriber.user = user
        subscriber.save()
        logger.info(f"Newsletter subscription reactivated for {email}")
        return subscriber, False

    subscriber = Subscriber.objects.create(
        email=email,
        consent=True,
        consent_date=now,
        source=source or 'website',
        user=user,
    )
    logger.info(f"New newsletter subscriber {email} from {subscriber.source}")
    return subscriber, True


def unsubscribe(email):
    """True when an active subscription was deactivated"""
    updated = Subscriber.objects.filter(email=email.strip().lower(), is_active=True).update(
        is_active=False, unsubscribed_at=timezone.now(), updated_at=timezone.now()
    )
    return bool(updated)


def active_emails():
    return list(Subscriber.objects.filter(is_active=True).order_by('email').values_list('email', flat=True))


def send_contact_message(full_name, subject, message, email='', phone='', order_number='',
                         preferred_contact='email'):
    """Forward a contact form submission to the business inbox; replies go to the customer"""
    lines = [
        f"From: {full_name}",
        f"Email: {email or '-'}",
        f"Phone: {phone or '-'}",
        f"Preferred contact: {preferred_contact}",
    ]
    if order_number:
        lines.append(f"Order number: {order_number}")
    lines += ['', message]

    contact_email = EmailMessage(
        subject=f"Contact form: {subject}",
        body='\n'.join(lines),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[settings.CONTACT_EMAIL],
        reply_to=[email] if email else None,
    )
    try:
        contact_email.send(fail_silently=False)
    except Exception as e:
        logger.error(f"Failed to forward contact message from {email or phone}: {str(e)}")
        raise ServiceError('Failed to send your message. Please try again later.',
                           status_code=status.HTTP_502_BAD_GATEWAY)
    logger.info(f"Contact message forwarded: {subject}")
