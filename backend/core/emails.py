"""Account emails: password reset and address verification links"""
import logging

from django.conf import settings
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail

from .tokens import email_verification_token, encode_uid

logger = logging.getLogger(__name__)


def _send(subject, lines, recipient):
    try:
        send_mail(
            subject=subject,
            message='\n'.join(lines),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Failed to send '{subject}' to {recipient}: {str(e)}")
        return False
    return True


def send_password_reset_email(user):
    """Email a reset link. Failures are logged and never raised."""
    link = f"{settings.APP_URL}/reset-password/{encode_uid(user)}/{default_token_generator.make_token(user)}"
    hours = settings.PASSWORD_RESET_TIMEOUT // 3600
    sent = _send('Reset your password', [
        f"Hello {user.first_name or 'there'},",
        '',
        'We received a request to reset the password for your account.',
        f"Choose a new password here: {link}",
        f"The link expires in {hours} hour(s). If you did not ask for this, ignore this email.",
    ], user.email)
    if sent:
        logger.info(f"Password reset email sent to user {user.id}")
    return sent


def send_verification_email(user):
    """Email an address verification link. Failures are logged and never raised."""
    link = f"{settings.APP_URL}/verify-email/{encode_uid(user)}/{email_verification_token.make_token(user)}"
    sent = _send('Verify your email address', [
        f"Welcome {user.first_name or 'there'},",
        '',
        f"Please confirm your email address: {link}",
    ], user.email)
    if sent:
        logger.info(f"Verification email sent to user {user.id}")
    return sent
