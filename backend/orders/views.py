import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework.response import Response

from backend.core.exceptions import ServiceError, error_response
from backend.core.utils import create_audit_log, paginate
from .filters import OrderFilter
from .models import Order
from .serializers import OrderSerializer, OrderTrackingSerializer, OrderStatusUpdateSerializer
from . import services

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([AllowAny])
def track_order(request):
    """Look up a regular or measurement order by its number"""
    from backend.measurements.serializers import MeasurementOrderTrackingSerializer

    try:
        order_type, order = services.track_order(request.query_params.get('order_number'))
    except ServiceError as e:
        return error_response(e)

    if order_type == 'regular':
        data = OrderTrackingSerializer(order).data
    else:
        data = MeasurementOrderTrackingSerializer(order).data
    return Response({'order_type': order_type, 'order': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_orders(request):
    """Order history for the signed-in customer"""
    queryset = Order.objects.filter(user=request.user).prefetch_related('items')
    items, pagination = paginate(queryset, request, default_limit=10)
    return Response({
        'results': OrderSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, order_number):
    """Order detail for its owner or an admin"""
    order = get_object_or_404(Order.objects.prefetch_related('items'), order_number=order_number)
    if order.user_id != request.user.id and not request.user.is_staff:
        return Response({'error': 'Order not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(OrderSerializer(order).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_order_list(request):
    """All orders with search, status and guest filters"""
    filterset = OrderFilter(request.query_params, queryset=Order.objects.prefetch_related('items'))
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    items, pagination = paginate(filterset.qs.order_by('-created_at'), request, default_limit=20)
    return Response({
        'results': OrderSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_order_detail(request, pk):
    order = get_object_or_404(Order.objects.prefetch_related('items'), pk=pk)
    return Response(OrderSerializer(order).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_update_order_status(request, pk):
    """Move an order through fulfilment"""
    order = get_object_or_404(Order, pk=pk)
    serializer = OrderStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = order.order_status
    new_status = serializer.validated_data['order_status']
    try:
        order = services.update_order_status(
            order, new_status, reason=serializer.validated_data.get('cancellation_reason')
        )
    except ServiceError as e:
        return error_response(e)

    create_audit_log(
        request=request,
        action='order_status_update',
        model_name='Order',
        object_id=str(order.id),
        object_name=order.customer_name or order.customer_email,
        object_reference=order.order_number,
        changes={'order_status': {'old': old_status, 'new': order.order_status}}
    )
    return Response(OrderSerializer(Order.objects.prefetch_related('items').get(pk=order.pk)).data)
