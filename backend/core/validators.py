"""Shared field validators for customer-facing forms"""
import re

from rest_framework import serializers

from .utils import PHONE_PATTERN

PASSWORD_RULES_MESSAGE = (
    'Password must be at least 8 characters and contain at least one '
    'uppercase letter, one lowercase letter, and one number.'
)


def validate_phone(value):
    if not value or not PHONE_PATTERN.match(value.strip()):
        raise serializers.ValidationError(
            'Phone number must be in international format (e.g., +2348012345678).'
        )
    return value.strip()


def validate_password_rules(value):
    if (
        not value
        or len(value) < 8
        or not re.search(r'[A-Z]', value)
        or not re.search(r'[a-z]', value)
        or not re.search(r'\d', value)
    ):
        raise serializers.ValidationError(PASSWORD_RULES_MESSAGE)
    return value


class AddressSerializer(serializers.Serializer):
    """Delivery address as supplied by guests at checkout"""
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20, validators=[validate_phone])
    address = serializers.CharField(min_length=5, max_length=500)
    city = serializers.CharField(min_length=2, max_length=100)
    state = serializers.CharField(min_length=2, max_length=100)
    zip_code = serializers.CharField(min_length=3, max_length=20)
    country = serializers.CharField(max_length=100, required=False, default='Nigeria')

    def validate_email(self, value):
        return value.strip().lower()


class AccountCreationMixin(serializers.Serializer):
    """Optional guest account creation fields shared by checkout forms"""
    create_account = serializers.BooleanField(required=False, default=False)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    confirm_password = serializers.CharField(required=False, allow_blank=True, write_only=True)

    def validate_account_fields(self, attrs):
        if not attrs.get('create_account'):
            return attrs
        password = attrs.get('password')
        confirm = attrs.get('confirm_password')
        if not password or not confirm:
            raise serializers.ValidationError(
                {'password': 'Password and confirm password are required to create an account.'}
            )
        try:
            validate_password_rules(password)
        except serializers.ValidationError as e:
            raise serializers.ValidationError({'password': e.detail})
        if password != confirm:
            raise serializers.ValidationError({'confirm_password': 'Passwords do not match.'})
        return attrs
