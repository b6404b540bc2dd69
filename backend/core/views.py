import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import Q
from .emails import send_verification_email
from .exceptions import ServiceError, error_response
from .models import AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer, UserProfileUpdateSerializer, AuditLogSerializer,
    ForgotPasswordSerializer, ResetPasswordSerializer, VerifyEmailSerializer,
)
from .throttling import AuthRateThrottle
from .utils import paginate
from . import services

logger = logging.getLogger(__name__)

User = get_user_model()

PASSWORD_RESET_SENT_MESSAGE = 'If an account exists for this email, a password reset link has been sent.'


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Login with email (stored as username) and password"""

    def validate(self, attrs):
        attrs[self.username_field] = (attrs.get(self.username_field) or '').strip().lower()
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['email'] = user.email
        token['is_staff'] = user.is_staff
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer
    throttle_classes = [AuthRateThrottle]


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AuthRateThrottle])
def register(request):
    """Customer registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        logger.info(f"Registered customer account: user_id={user.id}")
        send_verification_email(user)
        token = CustomTokenObtainPairSerializer.get_token(user)
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AuthRateThrottle])
def forgot_password(request):
    """Email a reset link; the answer is the same whether or not the email is registered"""
    serializer = ForgotPasswordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    services.request_password_reset(serializer.validated_data['email'])
    return Response({'message': PASSWORD_RESET_SENT_MESSAGE})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AuthRateThrottle])
def reset_password(request):
    serializer = ResetPasswordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    try:
        services.reset_password(data['uid'], data['token'], data['password'])
    except ServiceError as e:
        return error_response(e)
    return Response({'message': 'Your password has been reset. You can now sign in.'})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AuthRateThrottle])
def verify_email(request):
    """Confirm an email address from the link sent at registration"""
    serializer = VerifyEmailSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        data = serializer.validated_data
        user, newly_verified = services.verify_email(data['uid'], data['token'])
    except ServiceError as e:
        return error_response(e)
    return Response({
        'message': 'Email verified successfully.' if newly_verified else 'Email is already verified.',
        'user': UserSerializer(user).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([AuthRateThrottle])
def resend_verification(request):
    if request.user.email_verified:
        return Response({'error': 'Email is already verified.'}, status=status.HTTP_400_BAD_REQUEST)
    if not send_verification_email(request.user):
        return Response(
            {'error': 'Could not send the verification email. Please try again later.'},
            status=status.HTTP_502_BAD_GATEWAY
        )
    return Response({'message': f'Verification email sent to {request.user.email}.'})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the signed-in user's profile and address"""
    user = request.user
    if request.method == 'PATCH':
        serializer = UserProfileUpdateSerializer(user, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        user.refresh_from_db()

    user_data = UserSerializer(user).data
    user_data['has_complete_address'] = user.has_complete_address()
    return Response(user_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_list(request):
    """List customers, newest first"""
    queryset = User.objects.all().order_by('-created_at')
    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(
            Q(email__icontains=search) | Q(first_name__icontains=search) | Q(last_name__icontains=search)
        )
    items, pagination = paginate(queryset, request, default_limit=20)
    return Response({
        'results': UserSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def audit_log_list(request):
    """List audit logs with optional action / model filters"""
    queryset = AuditLog.objects.select_related('user').all()
    action = request.query_params.get('action')
    if action:
        queryset = queryset.filter(action=action)
    model_name = request.query_params.get('model_name')
    if model_name:
        queryset = queryset.filter(model_name=model_name)
    items, pagination = paginate(queryset, request, default_limit=50)
    return Response({
        'results': AuditLogSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def audit_log_detail(request, pk):
    audit_log = get_object_or_404(AuditLog, pk=pk)
    return Response(AuditLogSerializer(audit_log).data)
