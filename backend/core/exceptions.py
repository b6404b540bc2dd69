"""Business rule errors raised by service modules and translated by views"""
from rest_framework import status
from rest_framework.response import Response


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class PaymentGatewayError(ServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY


class ImageStorageError(ServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY


def error_response(exc):
    return Response({'error': exc.message}, status=exc.status_code)
