from fastapi import status


class ServiceError(Exception):
    """Base class for failures surfaced to API clients."""

    code = "ServiceError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    code = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ServiceError):
    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class Expired(ServiceError):
    code = "Expired"
    status_code = status.HTTP_400_BAD_REQUEST


class QuotaExhausted(ServiceError):
    code = "QuotaExhausted"
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(ServiceError):
    code = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT


class DependencyFailure(ServiceError):
    code = "DependencyFailure"
    status_code = status.HTTP_502_BAD_GATEWAY
