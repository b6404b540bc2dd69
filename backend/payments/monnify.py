"""
Monnify payment gateway client.

Talks to the Monnify REST API to start hosted checkouts, look up
transactions and authenticate webhook deliveries.
"""
import hashlib
import hmac
import logging
import os
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from django.conf import settings

from backend.core.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

INIT_TIMEOUT = 15
DEFAULT_TIMEOUT = 10
PAYMENT_METHODS = ['CARD', 'USSD', 'ACCOUNT_TRANSFER']


def _setting(name, default=''):
    return getattr(settings, name, os.getenv(name, default))


def format_phone(phone: str) -> str:
    """
    Normalise a Nigerian phone number to Monnify's 234XXXXXXXXXX form.

    +2340803... / 0803... / 803... -> 234803...
    """
    cleaned = (phone or '').replace(' ', '').replace('+', '')
    if cleaned.startswith('2340'):
        cleaned = '234' + cleaned[4:]
    if cleaned.startswith('0'):
        cleaned = '234' + cleaned[1:]
    if not cleaned.startswith('234'):
        cleaned = '234' + cleaned
    return cleaned


def round_amount(amount) -> float:
    return float(Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


class MonnifyClient:
    def __init__(self, base_url=None, api_key=None, secret_key=None, contract_code=None):
        self.base_url = (base_url or _setting('MONNIFY_BASE_URL', 'https://api.monnify.com')).rstrip('/')
        self.api_key = api_key if api_key is not None else _setting('MONNIFY_API_KEY')
        self.secret_key = secret_key if secret_key is not None else _setting('MONNIFY_SECRET_KEY')
        self.contract_code = contract_code if contract_code is not None else _setting('MONNIFY_CONTRACT_CODE')

    def validate_config(self):
        if not self.api_key or not self.secret_key or not self.contract_code:
            raise PaymentGatewayError(
                'Monnify configuration is incomplete. Please ensure MONNIFY_API_KEY, '
                'MONNIFY_SECRET_KEY, and MONNIFY_CONTRACT_CODE are set.'
            )

    def _unwrap(self, response, failure_message):
        try:
            payload = response.json()
        except ValueError:
            raise PaymentGatewayError(failure_message)
        if not response.ok or not payload.get('requestSuccessful'):
            message = payload.get('responseMessage') or failure_message
            logger.error(f"Monnify request failed ({response.status_code}): {message}")
            raise PaymentGatewayError(message)
        return payload.get('responseBody') or {}

    def get_auth_token(self) -> str:
        """Exchange API key and secret for a bearer token"""
        self.validate_config()
        try:
            response = requests.post(
                f"{self.base_url}/api/v1/auth/login",
                auth=(self.api_key, self.secret_key),
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Monnify authentication request failed: {str(e)}")
            raise PaymentGatewayError('Failed to authenticate with Monnify')

        body = self._unwrap(response, 'Failed to authenticate with Monnify')
        token = body.get('accessToken')
        if not token:
            raise PaymentGatewayError('Monnify did not return an access token')
        return token

    def init_transaction(self, amount, customer_name, customer_email, customer_phone,
                         payment_reference, payment_description, redirect_url,
                         metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Start a hosted checkout.

        Returns {'checkout_url', 'transaction_reference', 'payment_reference'}.
        """
        if not customer_name or not customer_email or not customer_phone:
            raise PaymentGatewayError('Customer name, email, and phone number are required')

        token = self.get_auth_token()
        payload = {
            'amount': round_amount(amount),
            'customerName': customer_name.strip(),
            'customerEmail': customer_email.strip(),
            'customerPhoneNumber': format_phone(customer_phone),
            'paymentDescription': payment_description.strip(),
            'currencyCode': 'NGN',
            'contractCode': self.contract_code,
            'redirectUrl': redirect_url,
            'paymentReference': payment_reference,
            'paymentMethods': PAYMENT_METHODS,
        }
        if metadata:
            payload['metaData'] = metadata

        logger.info(f"Creating Monnify checkout for {payment_reference}: amount={payload['amount']}")
        try:
            response = requests.post(
                f"{self.base_url}/api/v1/merchant/transactions/init-transaction",
                json=payload,
                headers={'Authorization': f'Bearer {token}'},
                timeout=INIT_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Monnify init-transaction failed for {payment_reference}: {str(e)}")
            raise PaymentGatewayError('Failed to create checkout URL with Monnify')

        body = self._unwrap(response, 'Failed to create checkout URL with Monnify')
        if not body.get('checkoutUrl') or not body.get('transactionReference'):
            raise PaymentGatewayError('Monnify returned an incomplete checkout response')
        return {
            'checkout_url': body['checkoutUrl'],
            'transaction_reference': body['transactionReference'],
            'payment_reference': body.get('paymentReference') or payment_reference,
        }

    def verify_transaction(self, transaction_reference: str) -> Dict[str, Any]:
        """Fetch a transaction's current state"""
        token = self.get_auth_token()
        try:
            response = requests.get(
                f"{self.base_url}/api/v2/transactions/{quote(transaction_reference, safe='')}",
                headers={'Authorization': f'Bearer {token}'},
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Monnify verify failed for {transaction_reference}: {str(e)}")
            raise PaymentGatewayError('Failed to verify transaction with Monnify')
        return self._unwrap(response, 'Failed to verify transaction')

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        """HMAC-SHA512 of the raw request body keyed with the secret key"""
        if not signature or not self.secret_key:
            return False
        expected = hmac.new(self.secret_key.encode(), raw_body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, signature.strip().lower())


def parse_webhook_payload(payload) -> Optional[Dict[str, Any]]:
    """Pull the fields we act on out of a webhook body; None when malformed"""
    if not isinstance(payload, dict):
        return None
    event_data = payload.get('eventData')
    if not payload.get('eventType') or not isinstance(event_data, dict):
        return None
    if not event_data.get('transactionReference'):
        return None
    return {
        'event_type': payload['eventType'],
        'transaction_reference': event_data['transactionReference'],
        'payment_reference': event_data.get('paymentReference'),
        'payment_status': str(event_data.get('paymentStatus') or '').upper(),
        'paid_on': event_data.get('paidOn'),
        'amount_paid': event_data.get('amountPaid'),
        'metadata': event_data.get('metaData') or {},
    }
