from django.urls import path
from . import views

urlpatterns = [
    path('orders/track/', views.track_order, name='order-track'),
    path('orders/my/', views.my_orders, name='my-orders'),
    path('orders/<str:order_number>/', views.order_detail, name='order-detail'),
    path('admin/orders/', views.admin_order_list, name='admin-order-list'),
    path('admin/orders/<int:pk>/', views.admin_order_detail, name='admin-order-detail'),
    path('admin/orders/<int:pk>/status/', views.admin_update_order_status, name='admin-order-status'),
]
