"""Per-client request limits for the public write endpoints"""
from rest_framework.permissions import SAFE_METHODS
from rest_framework.settings import api_settings
from rest_framework.throttling import SimpleRateThrottle


class ClientRateThrottle(SimpleRateThrottle):
    """
    Limit writes by client IP, signed in or not.

    The rate for ``scope`` is looked up in
    REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] on every request, so a scope
    without a rate is not throttled. Reads are never counted.
    """

    def get_rate(self):
        return api_settings.DEFAULT_THROTTLE_RATES.get(self.scope)

    def allow_request(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return super().allow_request(request, view)

    def get_cache_key(self, request, view):
        return self.cache_format % {
            'scope': self.scope,
            'ident': self.get_ident(request),
        }


class AuthRateThrottle(ClientRateThrottle):
    scope = 'auth'


class CheckoutRateThrottle(ClientRateThrottle):
    scope = 'checkout'


class ReviewRateThrottle(ClientRateThrottle):
    scope = 'reviews'


class NewsletterRateThrottle(ClientRateThrottle):
    scope = 'newsletter'


class ContactRateThrottle(ClientRateThrottle):
    scope = 'contact'
