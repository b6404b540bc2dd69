from rest_framework import serializers

from .models import Subscriber


class SubscriberSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subscriber
        fields = ['id', 'email', 'consent', 'consent_date', 'source', 'is_active', 'unsubscribed_at', 'created_at']
        read_only_fields = fields


class SubscribeSerializer(serializers.Serializer):
    email = serializers.EmailField()
    consent = serializers.BooleanField()
    source = serializers.CharField(max_length=50, required=False, allow_blank=True, default='website')

    def validate_consent(self, value):
        if not value:
            raise serializers.ValidationError('Consent is required to subscribe to the newsletter.')
        return value


class UnsubscribeSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ContactSerializer(serializers.Serializer):
    PREFERRED_CONTACT_CHOICES = ['email', 'phone']

    full_name = serializers.CharField(max_length=100)
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    subject = serializers.CharField(max_length=200)
    message = serializers.CharField(
        min_length=20, max_length=5000,
        error_messages={'min_length': 'Please provide at least 20 characters in your message so our team can assist you properly.'}
    )
    order_number = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    preferred_contact = serializers.ChoiceField(choices=PREFERRED_CONTACT_CHOICES, required=False, default='email')

    def validate(self, attrs):
        method = attrs['preferred_contact']
        if not attrs.get(method):
            raise serializers.ValidationError(
                {method: f'{method.capitalize()} is required when {method} is the preferred contact method.'}
            )
        return attrs
