"""Error types raised by the PA-API client and the product search.

Every error renders to the same ``{"error": ..., "details": ...}`` payload so
the HTTP layer can return it as-is.
"""
from typing import Optional


class PaapiError(Exception):
    """Base error for the signed PA-API client."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self):
        payload = {'error': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class ConfigurationError(PaapiError):
    """Credentials or partner tag missing. Raised before any network call."""

    status_code = 400


class UpstreamError(PaapiError):
    """PA-API answered with a non-2xx status."""

    status_code = 502

    def __init__(self, status: int, body: str = '', keyword: Optional[str] = None):
        where = f' for keyword "{keyword}"' if keyword else ''
        super().__init__(f'Amazon API returned HTTP {status}{where}', details=body or None)
        self.status = status
        self.body = body
        self.keyword = keyword


class TransportError(PaapiError):
    """The request never got an HTTP answer (DNS, timeout, reset)."""

    status_code = 502

    def __init__(self, reason: str, keyword: Optional[str] = None):
        where = f' for keyword "{keyword}"' if keyword else ''
        super().__init__(f'Could not reach Amazon API{where}', details=reason)
        self.reason = reason
        self.keyword = keyword


class SearchCancelled(PaapiError):
    status_code = 503

    def __init__(self, details: Optional[str] = None):
        super().__init__('Search cancelled', details=details)
