"""
Domain exceptions raised by the service layer.

Routes never build HTTP errors for these themselves; the handlers registered
in ``tago.main`` translate each class to its ``status_code``.
"""
from fastapi import status


class TagoError(Exception):
    """Base class for all domain errors."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TagoError):
    """A referenced user, party, settlement, participant or notification does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(TagoError):
    """The caller is not allowed to perform the action."""
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(TagoError):
    """The party already has a settlement."""
    status_code = status.HTTP_409_CONFLICT


class ValidationError(TagoError):
    """Request data violates a business rule."""
    status_code = status.HTTP_400_BAD_REQUEST


class RateLimitError(TagoError):
    """The action was repeated inside its cool-down window."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class DeliveryError(TagoError):
    """Writing to a push channel failed. Never leaves the notification layer."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
