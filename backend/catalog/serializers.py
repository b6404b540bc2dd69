from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from .models import Product, ProductVariant, MeasurementTemplate, UploadedImage, Review


class ProductVariantSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(required=False)
    image_urls = serializers.ListField(child=serializers.URLField(max_length=1000), min_length=1)
    measurements = serializers.DictField(child=serializers.DecimalField(max_digits=8, decimal_places=2, min_value=Decimal('0')),
                                         required=False)
    effective_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    available_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = ProductVariant
        fields = ['id', 'image_urls', 'color', 'size', 'quantity', 'reserved_quantity', 'price',
                  'discount_price', 'effective_price', 'in_stock', 'available_quantity', 'measurements']
        read_only_fields = ['reserved_quantity']

    def validate_measurements(self, value):
        unknown = [key for key in value if key not in ProductVariant.MEASUREMENT_KEYS]
        if unknown:
            raise serializers.ValidationError(f"Unknown measurement fields: {', '.join(unknown)}")
        return {key: str(amount) for key, amount in value.items()}


class ProductListSerializer(serializers.ModelSerializer):
    """Lightweight product card for listings"""
    min_price = serializers.SerializerMethodField()
    image_url = serializers.SerializerMethodField()
    in_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'category', 'is_featured', 'min_price', 'image_url', 'in_stock', 'created_at']

    def get_min_price(self, obj):
        prices = [v.effective_price for v in obj.variants.all()]
        return str(min(prices)) if prices else None

    def get_image_url(self, obj):
        for variant in obj.variants.all():
            if variant.image_urls:
                return variant.image_urls[0]
        return None

    def get_in_stock(self, obj):
        return any(v.in_stock and v.available_quantity > 0 for v in obj.variants.all())


class ProductSerializer(serializers.ModelSerializer):
    variants = ProductVariantSerializer(many=True)
    average_rating = serializers.SerializerMethodField()
    review_count = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'description', 'category', 'material', 'product_owner',
                  'is_featured', 'variants', 'average_rating', 'review_count', 'created_at', 'updated_at']
        read_only_fields = ['slug', 'created_at', 'updated_at']

    def get_average_rating(self, obj):
        ratings = [r.rating for r in obj.reviews.all()]
        if not ratings:
            return None
        return round(sum(ratings) / len(ratings), 1)

    def get_review_count(self, obj):
        return len(obj.reviews.all())

    def validate_variants(self, value):
        if not value:
            raise serializers.ValidationError('At least one product variant is required.')
        return value

    @transaction.atomic
    def create(self, validated_data):
        variants_data = validated_data.pop('variants')
        product = Product.objects.create(**validated_data)
        for variant_data in variants_data:
            variant_data.pop('id', None)
            ProductVariant.objects.create(product=product, **variant_data)
        return product

    @transaction.atomic
    def update(self, instance, validated_data):
        variants_data = validated_data.pop('variants', None)
        name_changed = 'name' in validated_data and validated_data['name'] != instance.name
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if name_changed:
            instance.slug = Product.generate_unique_slug(instance.name)
        instance.save()

        if variants_data is not None:
            # Existing variants keep their reserved stock across edits
            existing = {v.id: v for v in instance.variants.all()}
            kept_ids = []
            for variant_data in variants_data:
                variant_id = variant_data.pop('id', None)
                variant = existing.get(variant_id)
                if variant:
                    for attr, value in variant_data.items():
                        setattr(variant, attr, value)
                    variant.save()
                    kept_ids.append(variant.id)
                else:
                    kept_ids.append(ProductVariant.objects.create(product=instance, **variant_data).id)
            instance.variants.exclude(id__in=kept_ids).delete()
        return instance


class MeasurementTemplateFieldSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)


class MeasurementTemplateSerializer(serializers.ModelSerializer):
    fields = serializers.ListField(child=MeasurementTemplateFieldSerializer(), min_length=1, max_length=50)

    class Meta:
        model = MeasurementTemplate
        fields = ['id', 'title', 'fields', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Template title cannot be empty.')
        return value

    def validate_fields(self, value):
        return [{'name': field['name'].strip()} for field in value]


class UploadedImageSerializer(serializers.ModelSerializer):
    uploaded_by_email = serializers.CharField(source='uploaded_by.email', read_only=True, default=None)

    class Meta:
        model = UploadedImage
        fields = ['id', 'image_url', 'public_id', 'uploaded_by', 'uploaded_by_email', 'file_name',
                  'file_size', 'mime_type', 'created_at']
        read_only_fields = ['public_id', 'uploaded_by', 'created_at']
        extra_kwargs = {'image_url': {'validators': []}}


class ReviewSerializer(serializers.ModelSerializer):
    class Meta:
        model = Review
        fields = ['id', 'product', 'name', 'rating', 'comment', 'is_verified', 'created_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(required=False)
    product_slug = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(max_length=2000)

    def validate(self, attrs):
        if not attrs.get('product_id') and not (attrs.get('product_slug') or '').strip():
            raise serializers.ValidationError('A valid product identifier is required.')
        return attrs
