from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.exceptions import ServiceError, error_response
from .models import WishlistItem
from .serializers import WishlistItemSerializer, WishlistToggleSerializer
from . import services


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def wishlist(request):
    """
    GET: the signed-in customer's saved products
    DELETE: empty the wishlist
    """
    if request.method == 'DELETE':
        services.clear(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    items = WishlistItem.objects.filter(user=request.user).select_related('product').prefetch_related(
        'product__variants'
    )
    return Response(WishlistItemSerializer(items, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def wishlist_toggle(request):
    serializer = WishlistToggleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        added = services.toggle_item(request.user, serializer.validated_data['product_id'])
    except ServiceError as e:
        return error_response(e)
    return Response({'added': added})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def wishlist_remove(request, product_id):
    try:
        services.remove_item(request.user, product_id)
    except ServiceError as e:
        return error_response(e)
    return Response(status=status.HTTP_204_NO_CONTENT)
