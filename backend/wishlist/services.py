import logging

from django.db import IntegrityError, transaction

from backend.catalog.models import Product
from backend.core.exceptions import ServiceError, NotFoundError
from .models import WishlistItem

logger = logging.getLogger(__name__)

MAX_WISHLIST_ITEMS = 1000


def get_product(product_id):
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFoundError('Product not found')
    return product


def add_item(user, product):
    if WishlistItem.objects.filter(user=user).count() >= MAX_WISHLIST_ITEMS:
        raise ServiceError(f'Wishlist cannot hold more than {MAX_WISHLIST_ITEMS} items.')
    try:
        with transaction.atomic():
            item, _ = WishlistItem.objects.get_or_create(user=user, product=product)
    except IntegrityError:
        # Concurrent add of the same product
        item = WishlistItem.objects.get(user=user, product=product)
    return item


def toggle_item(user, product_id):
    """Add the product when absent, remove it when present. Returns True if added."""
    product = get_product(product_id)
    deleted, _ = WishlistItem.objects.filter(user=user, product=product).delete()
    if deleted:
        return False
    add_item(user, product)
    return True


def remove_item(user, product_id):
    deleted, _ = WishlistItem.objects.filter(user=user, product_id=product_id).delete()
    if not deleted:
        raise NotFoundError('Product is not in your wishlist')


def clear(user):
    deleted, _ = WishlistItem.objects.filter(user=user).delete()
    logger.info(f"Cleared {deleted} wishlist item(s) for user {user.id}")
    return deleted
