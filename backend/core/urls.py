from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, register, user_me,
    forgot_password, reset_password, verify_email, resend_verification,
    user_list, audit_log_list, audit_log_detail,
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/forgot-password/', forgot_password, name='forgot-password'),
    path('auth/reset-password/', reset_password, name='reset-password'),
    path('auth/verify-email/', verify_email, name='verify-email'),
    path('auth/resend-verification/', resend_verification, name='resend-verification'),

    # Admin endpoints
    path('admin/users/', user_list, name='admin-user-list'),
    path('admin/audit-logs/', audit_log_list, name='audit-log-list'),
    path('admin/audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),
]
