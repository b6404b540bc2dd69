"""Account helpers shared by checkout, password reset and email verification"""
import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.utils import timezone

from .emails import send_password_reset_email
from .exceptions import ConflictError, ServiceError
from .tokens import email_verification_token, user_from_uid

logger = logging.getLogger(__name__)

User = get_user_model()

INVALID_LINK_MESSAGE = 'This link is invalid or has expired. Please request a new one.'


def email_exists(email):
    return User.objects.filter(email__iexact=(email or '').strip()).exists()


def create_account_from_address(address, password):
    """
    Create a customer account for a guest checking out.

    Raises ConflictError when the email is already registered.
    """
    email = address['email'].strip().lower()
    if email_exists(email):
        raise ConflictError('An account with this email already exists')

    user = User(
        username=email,
        email=email,
        first_name=address.get('first_name', ''),
        last_name=address.get('last_name', ''),
        phone=address.get('phone'),
        street_address=address.get('address', ''),
        city=address.get('city', ''),
        state=address.get('state', ''),
        zip_code=address.get('zip_code', ''),
        country=address.get('country') or 'Nigeria',
        is_active=True,
    )
    user.set_password(password)
    user.save()
    logger.info(f"Created customer account during checkout: user_id={user.id}")
    return user


def request_password_reset(email):
    """
    Send a reset link when an active account uses this email.

    Returns whether a link went out; callers answer the same either way so
    the endpoint never reveals which emails are registered.
    """
    user = User.objects.filter(email__iexact=(email or '').strip(), is_active=True).first()
    if user is None:
        logger.info("Password reset requested for an unknown email")
        return False
    return send_password_reset_email(user)


def reset_password(uidb64, token, password):
    user = user_from_uid(uidb64)
    if user is None or not user.is_active or not default_token_generator.check_token(user, token):
        raise ServiceError(INVALID_LINK_MESSAGE)
    user.set_password(password)
    user.save(update_fields=['password', 'updated_at'])
    logger.info(f"Password reset for user {user.id}")
    return user


def verify_email(uidb64, token):
    """Mark the address verified. Returns (user, newly_verified)."""
    user = user_from_uid(uidb64)
    if user is None:
        raise ServiceError(INVALID_LINK_MESSAGE)
    if user.email_verified:
        return user, False
    if not email_verification_token.check_token(user, token):
        raise ServiceError(INVALID_LINK_MESSAGE)
    user.email_verified = True
    user.email_verified_at = timezone.now()
    user.save(update_fields=['email_verified', 'email_verified_at', 'updated_at'])
    logger.info(f"Email verified for user {user.id}")
    return user, True
