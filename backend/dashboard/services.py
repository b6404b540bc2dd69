from decimal import Decimal

from django.db.models import Sum, Count, Q, DecimalField

from backend.catalog.models import Product
from backend.measurements.models import MeasurementOrder, MeasurementOrderStatus
from backend.orders.models import Order, OrderStatus, PaymentStatus

RECENT_ORDER_LIMIT = 5


def _recent_orders():
    regular = [
        {
            'id': order.id,
            'order_number': order.order_number,
            'type': 'regular',
            'customer_name': order.customer_name,
            'amount': order.total,
            'status': order.order_status,
            'payment_status': order.payment_status,
            'created_at': order.created_at,
        }
        for order in Order.objects.order_by('-created_at')[:RECENT_ORDER_LIMIT]
    ]
    measurement = [
        {
            'id': order.id,
            'order_number': order.order_number,
            'type': 'measurement',
            'customer_name': order.customer_name,
            'amount': order.price,
            'status': order.status,
            'payment_status': order.payment_status,
            'created_at': order.created_at,
        }
        for order in MeasurementOrder.objects.order_by('-created_at')[:RECENT_ORDER_LIMIT]
    ]
    merged = sorted(regular + measurement, key=lambda entry: entry['created_at'], reverse=True)
    return merged[:RECENT_ORDER_LIMIT]


def get_dashboard_stats():
    """Headline numbers for the admin dashboard across both order types"""
    order_stats = Order.objects.aggregate(
        order_count=Count('id'),
        revenue=Sum('total', filter=Q(payment_status=PaymentStatus.PAID), output_field=DecimalField()),
        pending=Count('id', filter=Q(order_status=OrderStatus.ORDER_PLACED)),
        processing=Count('id', filter=Q(order_status=OrderStatus.PROCESSING)),
        shipped=Count('id', filter=Q(order_status=OrderStatus.SHIPPED)),
        delivered=Count('id', filter=Q(order_status=OrderStatus.DELIVERED)),
    )
    measurement_stats = MeasurementOrder.objects.aggregate(
        total=Count('id'),
        revenue=Sum('price', filter=Q(payment_status=PaymentStatus.PAID), output_field=DecimalField()),
        pending=Count('id', filter=Q(status=MeasurementOrderStatus.ORDER_RECEIVED)),
        processing=Count('id', filter=Q(status=MeasurementOrderStatus.SEWING)),
        shipped=Count('id', filter=Q(status=MeasurementOrderStatus.SHIPPED)),
        delivered=Count('id', filter=Q(status=MeasurementOrderStatus.DELIVERED)),
    )

    total_revenue = (order_stats['revenue'] or Decimal('0.00')) + (measurement_stats['revenue'] or Decimal('0.00'))
    return {
        'total_revenue': total_revenue,
        'total_orders': order_stats['order_count'],
        'total_measurement_orders': measurement_stats['total'],
        'total_products': Product.objects.count(),
        'pending_orders': order_stats['pending'] + measurement_stats['pending'],
        'processing_orders': order_stats['processing'] + measurement_stats['processing'],
        'shipped_orders': order_stats['shipped'] + measurement_stats['shipped'],
        'delivered_orders': order_stats['delivered'] + measurement_stats['delivered'],
        'recent_orders': _recent_orders(),
    }
