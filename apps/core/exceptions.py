"""
Business rule errors raised by service functions and rendered by the API views.
"""

from rest_framework import status
from rest_framework.response import Response


class DomainError(Exception):
    """
    Raised when a business rule rejects an operation.

    Rendered as ``{"error": message, "code": code, "details": details}``.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code=None, details=None, status_code=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_response(self):
        body = {"error": self.message}
        if self.code:
            body["code"] = self.code
        if self.details is not None:
            body["details"] = self.details
        return Response(body, status=self.status_code)


class NotFoundError(DomainError):
    """Raised when a referenced record does not exist in the tenant."""

    status_code = status.HTTP_404_NOT_FOUND
