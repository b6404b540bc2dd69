from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework.response import Response

from backend.core.exceptions import ServiceError, error_response
from backend.core.throttling import ContactRateThrottle, NewsletterRateThrottle
from .serializers import SubscriberSerializer, SubscribeSerializer, UnsubscribeSerializer, ContactSerializer
from . import services


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([NewsletterRateThrottle])
def subscribe(request):
    serializer = SubscribeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = request.user if request.user.is_authenticated else None
    try:
        subscriber, created = services.subscribe(user=user, **serializer.validated_data)
    except ServiceError as e:
        return error_response(e)
    return Response(
        SubscriberSerializer(subscriber).data,
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
    )


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([NewsletterRateThrottle])
def unsubscribe(request):
    serializer = UnsubscribeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response({'unsubscribed': services.unsubscribe(serializer.validated_data['email'])})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ContactRateThrottle])
def contact(request):
    """Contact form; the message is emailed to the business inbox"""
    serializer = ContactSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        services.send_contact_message(**serializer.validated_data)
    except ServiceError as e:
        return error_response(e)
    return Response({'message': 'Thank you for reaching out. Our team will get back to you shortly.'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def admin_subscriber_emails(request):
    """Emails of all active subscribers"""
    emails = services.active_emails()
    return Response({'emails': emails, 'count': len(emails)})
