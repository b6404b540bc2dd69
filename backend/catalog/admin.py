from django.contrib import admin
from .models import Product, ProductVariant, MeasurementTemplate, UploadedImage, Review


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ['color', 'size', 'price', 'discount_price', 'quantity', 'reserved_quantity', 'in_stock']
    readonly_fields = ['reserved_quantity']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'category', 'product_owner', 'is_featured', 'created_at']
    list_filter = ['category', 'is_featured']
    search_fields = ['name', 'slug', 'description']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ProductVariantInline]


@admin.register(MeasurementTemplate)
class MeasurementTemplateAdmin(admin.ModelAdmin):
    list_display = ['title', 'created_at']
    search_fields = ['title']


@admin.register(UploadedImage)
class UploadedImageAdmin(admin.ModelAdmin):
    list_display = ['file_name', 'public_id', 'uploaded_by', 'file_size', 'created_at']
    search_fields = ['file_name', 'public_id', 'image_url']
    readonly_fields = ['created_at']


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['product', 'name', 'rating', 'is_verified', 'created_at']
    list_filter = ['rating', 'is_verified']
    search_fields = ['name', 'email', 'comment']
