from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework.response import Response

from backend.core.utils import create_audit_log
from .constants import SHIPPING_LOCATIONS
from .serializers import ShippingSettingsSerializer
from . import services


@api_view(['GET'])
@permission_classes([AllowAny])
def shipping_settings(request):
    """Current location fees and free-shipping threshold"""
    return Response(ShippingSettingsSerializer(services.get_shipping_settings()).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def shipping_locations(request):
    return Response({'locations': SHIPPING_LOCATIONS})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_shipping_settings(request):
    """Create or update shipping settings"""
    serializer = ShippingSettingsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    previous = services.get_shipping_settings()
    old_threshold = str(previous.free_shipping_threshold)
    settings_obj = services.update_shipping_settings(
        location_fees=serializer.validated_data.get('location_fees'),
        free_shipping_threshold=serializer.validated_data.get('free_shipping_threshold'),
        user=request.user,
    )
    create_audit_log(
        request=request,
        action='shipping_settings_update',
        model_name='ShippingSettings',
        object_id=str(settings_obj.id),
        changes={
            'free_shipping_threshold': {'old': old_threshold, 'new': str(settings_obj.free_shipping_threshold)},
            'locations': len(settings_obj.location_fees),
        }
    )
    return Response(ShippingSettingsSerializer(settings_obj).data)
