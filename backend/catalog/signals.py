"""
Cache invalidation signals
Clear cached product listings when catalogue data changes
"""
import logging

from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from backend.core.cache_utils import invalidate_products_cache
from .models import Product, ProductVariant, Review

logger = logging.getLogger(__name__)


@receiver([post_save, post_delete], sender=Product)
@receiver([post_save, post_delete], sender=ProductVariant)
@receiver([post_save, post_delete], sender=Review)
def invalidate_catalog_cache(sender, instance, **kwargs):
    """Invalidate product caches after the surrounding transaction commits"""
    transaction.on_commit(invalidate_products_cache)
