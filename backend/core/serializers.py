from rest_framework import serializers
from .models import User, AuditLog
from .validators import validate_phone, validate_password_rules


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'phone',
            'street_address', 'city', 'state', 'zip_code', 'country',
            'is_active', 'is_staff', 'email_verified', 'created_at', 'updated_at',
        ]
        read_only_fields = ['username', 'email', 'is_active', 'is_staff', 'email_verified', 'created_at', 'updated_at']


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """Profile and address update for the signed-in user"""
    phone = serializers.CharField(max_length=20, required=False, validators=[validate_phone])
    street_address = serializers.CharField(min_length=5, max_length=500, required=False)
    city = serializers.CharField(min_length=2, max_length=100, required=False)
    state = serializers.CharField(min_length=2, max_length=100, required=False)
    zip_code = serializers.CharField(min_length=3, max_length=20, required=False)

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'phone', 'street_address', 'city', 'state', 'zip_code', 'country']


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password_rules])
    password_confirm = serializers.CharField(write_only=True)
    phone = serializers.CharField(max_length=20, required=False, validators=[validate_phone])

    class Meta:
        model = User
        fields = ['email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone']

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('An account with this email already exists')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User(username=validated_data['email'], is_active=True, **validated_data)
        user.set_password(password)
        user.save()
        return user


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    password = serializers.CharField(write_only=True, validators=[validate_password_rules])
    password_confirm = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs


class VerifyEmailSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
