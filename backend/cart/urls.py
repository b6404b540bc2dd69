from django.urls import path
from .views import cart_calculate

urlpatterns = [
    path('cart/calculate/', cart_calculate, name='cart-calculate'),
]
