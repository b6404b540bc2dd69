from django.urls import path

from . import views

urlpatterns = [
    path('payment/checkout/', views.checkout, name='payment-checkout'),
    path('payment/checkout/existing/', views.checkout_existing, name='payment-checkout-existing'),
    path('payment/measurement-checkout/', views.measurement_checkout, name='payment-measurement-checkout'),
    path('payment/verify/', views.verify_payment, name='payment-verify'),
    path('payment/webhook/', views.webhook, name='payment-webhook'),
]
