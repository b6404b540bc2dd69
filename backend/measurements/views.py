import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework.response import Response

from backend.core.exceptions import ServiceError, error_response
from backend.core.throttling import CheckoutRateThrottle
from backend.core.utils import create_audit_log, paginate
from .filters import MeasurementOrderFilter
from .models import MeasurementOrder
from .serializers import (
    MeasurementOrderCreateSerializer, MeasurementOrderSerializer,
    MeasurementPriceSerializer, MeasurementStatusUpdateSerializer,
)
from . import services

logger = logging.getLogger(__name__)


def _queryset():
    return MeasurementOrder.objects.select_related('replaced_by_order', 'original_order')


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([CheckoutRateThrottle])
def measurement_order_create(request):
    """Submit a made-to-measure order as a customer or guest"""
    serializer = MeasurementOrderCreateSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        order = services.create_measurement_order(serializer.validated_data, user=request.user)
    except ServiceError as e:
        return error_response(e)
    return Response(MeasurementOrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_measurement_orders(request):
    items, pagination = paginate(_queryset().filter(user=request.user), request, default_limit=10)
    return Response({
        'results': MeasurementOrderSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def measurement_order_detail(request, order_number):
    order = get_object_or_404(_queryset(), order_number=order_number)
    if order.user_id != request.user.id and not request.user.is_staff:
        return Response({'error': 'Order not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(MeasurementOrderSerializer(order).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_measurement_order_list(request):
    """All measurement orders with search, status and guest filters"""
    filterset = MeasurementOrderFilter(request.query_params, queryset=_queryset())
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    items, pagination = paginate(filterset.qs.order_by('-created_at'), request, default_limit=20)
    return Response({
        'results': MeasurementOrderSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_measurement_order_detail(request, pk):
    return Response(MeasurementOrderSerializer(get_object_or_404(_queryset(), pk=pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_set_measurement_price(request, pk):
    """Price an order; re-pricing issues a replacement order"""
    order = get_object_or_404(MeasurementOrder, pk=pk)
    serializer = MeasurementPriceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_price = str(order.price)
    try:
        priced_order, replaced = services.set_measurement_order_price(
            order, serializer.validated_data['price'], admin_user=request.user
        )
    except ServiceError as e:
        return error_response(e)

    create_audit_log(
        request=request,
        action='measurement_order_replaced' if replaced else 'measurement_price_set',
        model_name='MeasurementOrder',
        object_id=str(priced_order.id),
        object_name=priced_order.customer_name,
        object_reference=priced_order.order_number,
        changes={
            'price': {'old': old_price, 'new': str(priced_order.price)},
            'replaced_order': order.order_number if replaced else None,
        }
    )
    return Response({
        'replaced': replaced,
        'order': MeasurementOrderSerializer(_queryset().get(pk=priced_order.pk)).data,
    }, status=status.HTTP_201_CREATED if replaced else status.HTTP_200_OK)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_update_measurement_status(request, pk):
    order = get_object_or_404(MeasurementOrder, pk=pk)
    serializer = MeasurementStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = order.status
    try:
        order = services.update_measurement_order_status(order, serializer.validated_data['status'])
    except ServiceError as e:
        return error_response(e)

    create_audit_log(
        request=request,
        action='order_status_update',
        model_name='MeasurementOrder',
        object_id=str(order.id),
        object_name=order.customer_name,
        object_reference=order.order_number,
        changes={'status': {'old': old_status, 'new': order.status}}
    )
    return Response(MeasurementOrderSerializer(order).data)
