import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from backend.core.exceptions import ServiceError, NotFoundError, error_response
from backend.core.throttling import CheckoutRateThrottle
from backend.measurements.models import MeasurementOrder
from backend.measurements.serializers import MeasurementOrderSerializer, MeasurementOrderTrackingSerializer
from backend.orders.models import Order
from backend.orders.serializers import CreateOrderSerializer, OrderSerializer, OrderTrackingSerializer
from backend.orders.services import create_order
from .serializers import ExistingOrderCheckoutSerializer, CheckoutResponseSerializer
from . import services

logger = logging.getLogger(__name__)


def _owned_order(model, request, validated_data):
    """
    Fetch an order the caller may pay for.

    Account orders belong to their user (or an admin); guest orders need
    the email they were placed with.
    """
    order = model.objects.filter(order_number=validated_data['order_number']).first()
    if order is None:
        raise NotFoundError('Order not found')

    user = request.user
    if order.user_id:
        if not user.is_authenticated or (order.user_id != user.id and not user.is_staff):
            raise NotFoundError('Order not found')
    else:
        email = (validated_data.get('email') or '').strip().lower()
        if not (user.is_authenticated and user.is_staff) and email != (order.guest_email or '').lower():
            raise NotFoundError('Order not found')
    return order


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([CheckoutRateThrottle])
def checkout(request):
    """Place an order and hand the customer off to Monnify"""
    serializer = CreateOrderSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        order = create_order(serializer.validated_data, user=request.user)
    except ServiceError as e:
        return error_response(e)

    try:
        result = services.initiate_order_checkout(order)
    except ServiceError as e:
        logger.error(f"Checkout initiation failed for {order.order_number}: {e.message}")
        return Response({'error': e.message, 'order_number': order.order_number}, status=e.status_code)

    return Response({
        **CheckoutResponseSerializer(result).data,
        'order': OrderSerializer(Order.objects.prefetch_related('items').get(pk=order.pk)).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([CheckoutRateThrottle])
def checkout_existing(request):
    """Retry payment for an order that was placed but not paid"""
    serializer = ExistingOrderCheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        order = _owned_order(Order, request, serializer.validated_data)
        result = services.initiate_order_checkout(order)
    except ServiceError as e:
        return error_response(e)
    return Response(CheckoutResponseSerializer(result).data)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([CheckoutRateThrottle])
def measurement_checkout(request):
    serializer = ExistingOrderCheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        order = _owned_order(MeasurementOrder, request, serializer.validated_data)
        result = services.initiate_measurement_checkout(order)
    except ServiceError as e:
        return error_response(e)
    return Response(CheckoutResponseSerializer(result).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def verify_payment(request):
    """Confirm the outcome of a checkout when the customer is redirected back"""
    reference = request.query_params.get('reference') or request.query_params.get('paymentReference')
    if not reference:
        return Response({'error': 'Payment reference is required'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        result = services.verify_payment(reference)
    except ServiceError as e:
        return error_response(e)

    order = result['order']
    # Anyone holding the reference may poll; only the owner or staff see addresses and references
    full_view = request.user.is_authenticated and (request.user.is_staff or order.user_id == request.user.id)
    if result['order_type'] == 'regular':
        order = Order.objects.prefetch_related('items').get(pk=order.pk)
        order_data = (OrderSerializer if full_view else OrderTrackingSerializer)(order).data
    else:
        order_data = (MeasurementOrderSerializer if full_view else MeasurementOrderTrackingSerializer)(order).data
    return Response({
        'order_type': result['order_type'],
        'payment_status': result['payment_status'],
        'order': order_data,
    })


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def webhook(request):
    """Monnify transaction notifications"""
    signature = request.headers.get('monnify-signature')
    status_code, message = services.handle_webhook(request.body, signature)
    if status_code == status.HTTP_200_OK:
        return Response({'message': message})
    return Response({'error': message}, status=status_code)
