"""
Release stock held by unpaid orders whose reservation has expired.

Usage:
    python manage.py release_reservations
"""
from django.core.management.base import BaseCommand

from backend.orders.services import release_expired_reservations


class Command(BaseCommand):
    help = 'Release inventory reservations of unpaid orders past their expiry'

    def handle(self, *args, **options):
        released = release_expired_reservations()
        self.stdout.write(self.style.SUCCESS(f"Released reservations for {released} order(s)"))
