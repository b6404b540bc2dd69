from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .serializers import CartCalculateSerializer, CartSummarySerializer
from .services import calculate_cart


@api_view(['POST'])
@permission_classes([AllowAny])
def cart_calculate(request):
    """Authoritative cart totals for the client-side cart"""
    serializer = CartCalculateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    summary = calculate_cart(
        serializer.validated_data['items'],
        shipping_location=serializer.validated_data.get('shipping_location') or None,
    )
    return Response(CartSummarySerializer(summary).data)
