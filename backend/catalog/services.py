"""
Catalogue services: image usage tracking, Cloudinary cleanup and review verification.
"""
import logging
import re
from typing import Iterable, Optional, Set

import cloudinary
import cloudinary.uploader
from django.conf import settings

from backend.core.exceptions import ConflictError, ImageStorageError

from .models import ProductVariant, UploadedImage

logger = logging.getLogger(__name__)

CLOUDINARY_URL_PATTERN = re.compile(
    r'^https?://res\.cloudinary\.com/[^/]+/image/upload/(?:v\d+/)?(?P<public_id>.+?)(?:\.[A-Za-z0-9]+)?$'
)


def extract_public_id_from_url(url: str) -> Optional[str]:
    """
    Extract the Cloudinary public id from a delivery URL.

    https://res.cloudinary.com/demo/image/upload/v1712/products/abc123.jpg
    -> products/abc123
    """
    if not url:
        return None
    match = CLOUDINARY_URL_PATTERN.match(url.strip())
    if not match:
        return None
    return match.group('public_id')


def collect_used_image_urls() -> Set[str]:
    """Every image URL referenced by a product variant, order item or measurement order"""
    from backend.orders.models import OrderItem
    from backend.measurements.models import MeasurementOrder

    used = set()
    for urls in ProductVariant.objects.values_list('image_urls', flat=True):
        used.update(urls or [])
    for urls in OrderItem.objects.values_list('image_urls', flat=True):
        used.update(urls or [])
    for templates in MeasurementOrder.objects.values_list('templates', flat=True):
        for template in templates or []:
            used.update(template.get('sample_image_urls') or [])
    return used


def find_unused_images():
    """Queryset of uploaded images nothing references any more, newest first"""
    used = collect_used_image_urls()
    return UploadedImage.objects.exclude(image_url__in=used).order_by('-created_at')


def is_image_in_use(image: UploadedImage) -> bool:
    return image.image_url in collect_used_image_urls()


def _configure_cloudinary():
    cloudinary.config(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        secure=True,
    )


def destroy_cloudinary_image(public_id: str):
    """
    Delete an asset from Cloudinary and invalidate its CDN copies.

    An asset Cloudinary no longer knows about counts as deleted. Any other
    outcome raises ImageStorageError.
    """
    _configure_cloudinary()
    try:
        result = cloudinary.uploader.destroy(public_id, resource_type='image', invalidate=True)
    except Exception as e:
        logger.error(f"Cloudinary destroy failed for {public_id}: {str(e)}")
        raise ImageStorageError('Failed to delete image from Cloudinary')

    outcome = (result or {}).get('result')
    logger.info(f"Cloudinary destroy result for {public_id}: {outcome}")
    if outcome not in ('ok', 'not found'):
        logger.error(f"Unexpected Cloudinary destroy result for {public_id}: {outcome}")
        raise ImageStorageError('Failed to delete image from Cloudinary')


def delete_unused_image(image: UploadedImage):
    """
    Delete an image from Cloudinary, then its record.

    Refuses images that are still referenced. The record is kept when the
    Cloudinary delete fails so the image shows up as unused again.
    """
    if is_image_in_use(image):
        raise ConflictError('Image is still in use')
    public_id = image.public_id or extract_public_id_from_url(image.image_url)
    if public_id:
        destroy_cloudinary_image(public_id)
    else:
        logger.warning(f"No Cloudinary public id for image {image.id}, removing the record only")
    logger.info(f"Deleting unused image {image.id} ({public_id or image.image_url})")
    image.delete()


def purge_product_images(image_urls: Iterable[str]) -> int:
    """Remove a deleted product's images that nothing else references; returns how many went"""
    used = collect_used_image_urls()
    purged = 0
    for url in sorted(set(image_urls) - used):
        record = UploadedImage.objects.filter(image_url=url).first()
        public_id = (record.public_id if record else None) or extract_public_id_from_url(url)
        if public_id:
            try:
                destroy_cloudinary_image(public_id)
            except ImageStorageError:
                # Record stays so the unused-images screen can retry it
                continue
        UploadedImage.objects.filter(image_url=url).delete()
        purged += 1
    return purged


def register_uploaded_image(image_url, uploaded_by=None, file_name=None, file_size=None, mime_type=None):
    image, created = UploadedImage.objects.get_or_create(
        image_url=image_url,
        defaults={
            'public_id': extract_public_id_from_url(image_url),
            'uploaded_by': uploaded_by,
            'file_name': file_name,
            'file_size': file_size,
            'mime_type': mime_type,
        }
    )
    return image, created


def has_purchased_product(user, product) -> bool:
    """True when the user has a paid order containing the product"""
    if not user or not user.is_authenticated:
        return False
    from backend.orders.models import OrderItem, PaymentStatus
    return OrderItem.objects.filter(
        order__user=user,
        order__payment_status=PaymentStatus.PAID,
        product=product,
    ).exists()
