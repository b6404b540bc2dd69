from django.urls import path
from . import views

urlpatterns = [
    path('measurement-orders/', views.measurement_order_create, name='measurement-order-create'),
    path('measurement-orders/my/', views.my_measurement_orders, name='my-measurement-orders'),
    path('measurement-orders/<str:order_number>/', views.measurement_order_detail, name='measurement-order-detail'),
    path('admin/measurement-orders/', views.admin_measurement_order_list, name='admin-measurement-order-list'),
    path('admin/measurement-orders/<int:pk>/', views.admin_measurement_order_detail, name='admin-measurement-order-detail'),
    path('admin/measurement-orders/<int:pk>/price/', views.admin_set_measurement_price, name='admin-measurement-order-price'),
    path('admin/measurement-orders/<int:pk>/status/', views.admin_update_measurement_status, name='admin-measurement-order-status'),
]
