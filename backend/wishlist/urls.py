from django.urls import path
from .views import wishlist, wishlist_toggle, wishlist_remove

urlpatterns = [
    path('wishlist/', wishlist, name='wishlist'),
    path('wishlist/toggle/', wishlist_toggle, name='wishlist-toggle'),
    path('wishlist/<int:product_id>/', wishlist_remove, name='wishlist-remove'),
]
