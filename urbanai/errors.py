"""Exceptions raised by the Urban AI service clients."""

from typing import Optional


class UrbanAIError(Exception):
    """Base class for all errors raised by this package"""


class APIError(UrbanAIError):
    """An external service answered with an error, or could not be reached"""

    def __init__(self, detail: str, status: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status = status


class AuthenticationRequired(UrbanAIError):
    """No valid bearer token; the user has to log in again"""

    def __init__(self, detail: str = 'Authentication expired. Please login again.'):
        super().__init__(detail)
        self.detail = detail


class TokenDecodeError(UrbanAIError):
    """A JWT could not be split or its payload decoded"""


class PayloadError(UrbanAIError):
    """Building data is missing what an analysis request needs"""
