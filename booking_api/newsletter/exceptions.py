# booking_api/newsletter/exceptions.py
from fastapi import status

class NewsletterError(Exception):
    """Base error for newsletter use-cases, carries the HTTP status to surface"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class NotFoundError(NewsletterError):
    status_code = status.HTTP_404_NOT_FOUND

class ConflictError(NewsletterError):
    status_code = status.HTTP_409_CONFLICT

class ForbiddenError(NewsletterError):
    status_code = status.HTTP_403_FORBIDDEN

class DuplicateRecordError(ConflictError):
    """A unique index (email, token) rejected an insert"""

class InvalidTransitionError(NewsletterError):
    pass

class TemplateRenderError(NewsletterError):
    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = errors or []
