from django.urls import path
from . import views

urlpatterns = [
    # Storefront
    path('products/', views.product_list, name='product-list'),
    path('products/<slug:slug>/', views.product_detail_by_slug, name='product-detail'),
    path('products/<slug:slug>/reviews/', views.product_reviews, name='product-reviews'),
    path('reviews/', views.review_create, name='review-create'),
    path('measurement-templates/', views.measurement_template_list, name='measurement-template-list'),
    path('measurement-templates/<int:pk>/', views.measurement_template_detail, name='measurement-template-detail'),

    # Admin
    path('admin/products/', views.admin_product_list_create, name='admin-product-list-create'),
    path('admin/products/<int:pk>/', views.admin_product_detail, name='admin-product-detail'),
    path('admin/products/<int:pk>/variants/<int:variant_pk>/', views.admin_product_variant_delete, name='admin-product-variant-delete'),
    path('admin/measurement-templates/', views.admin_measurement_template_create, name='admin-measurement-template-create'),
    path('admin/measurement-templates/<int:pk>/', views.admin_measurement_template_detail, name='admin-measurement-template-detail'),
    path('admin/images/', views.admin_image_list_create, name='admin-image-list-create'),
    path('admin/images/unused/', views.admin_unused_images, name='admin-unused-images'),
    path('admin/images/<int:pk>/', views.admin_image_delete, name='admin-image-delete'),
]
