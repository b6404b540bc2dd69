import logging

from django.db.models import Avg, Count
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework.response import Response

from backend.core.cache_utils import (
    get_cached_products_list, cache_products_list,
    get_cached_product_detail, cache_product_detail,
)
from backend.core.exceptions import ServiceError, error_response
from backend.core.throttling import ReviewRateThrottle
from backend.core.utils import create_audit_log, paginate
from .filters import ProductFilter
from .models import Product, ProductVariant, MeasurementTemplate, UploadedImage, Review
from .serializers import (
    ProductSerializer, ProductListSerializer, ProductVariantSerializer,
    MeasurementTemplateSerializer, UploadedImageSerializer,
    ReviewSerializer, ReviewCreateSerializer,
)
from . import services

logger = logging.getLogger(__name__)


def _product_queryset():
    return Product.objects.prefetch_related('variants', 'reviews')


# Storefront product views
@api_view(['GET'])
@permission_classes([AllowAny])
def product_list(request):
    """Paginated storefront product listing with filters and sorting"""
    cache_params = {key: request.query_params.get(key) for key in sorted(request.query_params.keys())}
    cached_data, cache_key = get_cached_products_list(cache_params)
    if cached_data is not None:
        return Response(cached_data)

    filterset = ProductFilter(request.query_params, queryset=_product_queryset())
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = filterset.qs
    if 'sort_by' not in request.query_params:
        queryset = queryset.order_by('name')

    items, pagination = paginate(queryset, request, default_limit=12)
    data = {
        'results': ProductListSerializer(items, many=True).data,
        'pagination': pagination,
    }
    cache_products_list(cache_key, data)
    return Response(data)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_detail_by_slug(request, slug):
    """Product page data"""
    cached_data, cache_key = get_cached_product_detail(slug)
    if cached_data is not None:
        return Response(cached_data)

    product = get_object_or_404(_product_queryset(), slug=slug)
    data = ProductSerializer(product).data
    cache_product_detail(cache_key, data)
    return Response(data)


# Admin product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_product_list_create(request):
    """List all products or create a new product"""
    if request.method == 'GET':
        filterset = ProductFilter(request.query_params, queryset=_product_queryset())
        queryset = filterset.qs.order_by('-created_at') if filterset.is_valid() else _product_queryset().none()
        items, pagination = paginate(queryset, request, default_limit=20)
        return Response({
            'results': ProductSerializer(items, many=True).data,
            'pagination': pagination,
        })

    serializer = ProductSerializer(data=request.data)
    if serializer.is_valid():
        product = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Product',
            object_id=str(product.id),
            object_name=product.name,
            object_reference=product.slug,
            changes={'variants': product.variants.count()}
        )
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(_product_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            old_data = {'name': product.name, 'category': product.category, 'is_featured': product.is_featured}
            product = serializer.save()
            new_data = {'name': product.name, 'category': product.category, 'is_featured': product.is_featured}
            changes = {k: {'old': old_data[k], 'new': new_data[k]} for k in old_data if old_data[k] != new_data[k]}
            create_audit_log(
                request=request,
                action='update',
                model_name='Product',
                object_id=str(product.id),
                object_name=product.name,
                object_reference=product.slug,
                changes=changes
            )
            return Response(ProductSerializer(Product.objects.get(pk=product.pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product_name = product.name
        product_slug = product.slug
        product_id = str(product.id)
        image_urls = [url for variant in product.variants.all() for url in (variant.image_urls or [])]
        product.delete()
        purged = services.purge_product_images(image_urls)
        logger.info(f"Deleted product {product_slug}, removed {purged} of {len(set(image_urls))} images")
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=product_id,
            object_name=product_name,
            object_reference=product_slug,
            changes={'name': product_name}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_product_variant_delete(request, pk, variant_pk):
    """Delete one variant; a product always keeps at least one"""
    product = get_object_or_404(Product, pk=pk)
    variant = get_object_or_404(ProductVariant, pk=variant_pk, product=product)
    if product.variants.count() <= 1:
        return Response(
            {'error': 'Cannot delete the last variant. At least one variant is required.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    image_urls = list(variant.image_urls or [])
    variant.delete()
    services.purge_product_images(image_urls)
    create_audit_log(
        request=request,
        action='delete',
        model_name='ProductVariant',
        object_id=str(variant_pk),
        object_name=product.name,
        object_reference=product.slug,
        changes={'color': variant.color, 'size': variant.size}
    )
    return Response(ProductVariantSerializer(product.variants.all(), many=True).data)


# Reviews
@api_view(['GET'])
@permission_classes([AllowAny])
def product_reviews(request, slug):
    """Reviews for a product, newest first, with rating summary"""
    product = get_object_or_404(Product, slug=slug)
    queryset = Review.objects.filter(product=product)
    summary = queryset.aggregate(average=Avg('rating'), count=Count('id'))
    items, pagination = paginate(queryset, request, default_limit=10)
    return Response({
        'results': ReviewSerializer(items, many=True).data,
        'average_rating': round(summary['average'], 1) if summary['average'] is not None else None,
        'review_count': summary['count'],
        'pagination': pagination,
    })


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ReviewRateThrottle])
def review_create(request):
    """Create a review as a signed-in customer or a guest"""
    serializer = ReviewCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    if data.get('product_id'):
        product = get_object_or_404(Product, pk=data['product_id'])
    else:
        product = get_object_or_404(Product, slug=data['product_slug'].strip())

    user = request.user if request.user.is_authenticated else None
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    if user:
        name = user.full_name or name
        email = user.email or email
    if not name or not email:
        return Response({'error': 'Name and email are required for guest reviews.'},
                        status=status.HTTP_400_BAD_REQUEST)

    review = Review.objects.create(
        product=product,
        user=user,
        name=name,
        email=email,
        rating=data['rating'],
        comment=data['comment'].strip(),
        is_verified=services.has_purchased_product(user, product),
    )
    return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


# Measurement templates
@api_view(['GET'])
@permission_classes([AllowAny])
def measurement_template_list(request):
    templates = MeasurementTemplate.objects.all()
    return Response(MeasurementTemplateSerializer(templates, many=True).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def measurement_template_detail(request, pk):
    template = get_object_or_404(MeasurementTemplate, pk=pk)
    return Response(MeasurementTemplateSerializer(template).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_measurement_template_create(request):
    serializer = MeasurementTemplateSerializer(data=request.data)
    if serializer.is_valid():
        template = serializer.save()
        return Response(MeasurementTemplateSerializer(template).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_measurement_template_detail(request, pk):
    """Update or delete a measurement template"""
    template = get_object_or_404(MeasurementTemplate, pk=pk)
    if request.method == 'DELETE':
        template.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = MeasurementTemplateSerializer(template, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Uploaded images
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_image_list_create(request):
    """List uploaded images or record a new CDN upload"""
    if request.method == 'GET':
        items, pagination = paginate(UploadedImage.objects.select_related('uploaded_by'), request, default_limit=20)
        return Response({
            'results': UploadedImageSerializer(items, many=True).data,
            'pagination': pagination,
        })

    serializer = UploadedImageSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    image, created = services.register_uploaded_image(
        serializer.validated_data['image_url'],
        uploaded_by=request.user,
        file_name=serializer.validated_data.get('file_name'),
        file_size=serializer.validated_data.get('file_size'),
        mime_type=serializer.validated_data.get('mime_type'),
    )
    return Response(
        UploadedImageSerializer(image).data,
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_unused_images(request):
    """Images no product, order or measurement order references"""
    items, pagination = paginate(services.find_unused_images(), request, default_limit=20)
    return Response({
        'results': UploadedImageSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_image_delete(request, pk):
    image = get_object_or_404(UploadedImage, pk=pk)
    image_url = image.image_url
    try:
        services.delete_unused_image(image)
    except ServiceError as e:
        return error_response(e)
    create_audit_log(
        request=request,
        action='image_delete',
        model_name='UploadedImage',
        object_id=str(pk),
        object_name=image_url,
        changes={'image_url': image_url}
    )
    return Response(status=status.HTTP_204_NO_CONTENT)
