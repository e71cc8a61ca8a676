from typing import Optional


class AnalysisError(Exception):
    """Base class for failures that abort an analysis"""
    http_status = 500


class InvalidURL(AnalysisError, ValueError):
    http_status = 400

    def __init__(self, url: str):
        super().__init__(f'Invalid URL format: {url!r}')
        self.url = url


class FetchFailed(AnalysisError):
    """The target origin answered with a non-2xx status"""

    def __init__(self, url: str, status_code: int, reason: Optional[str] = None):
        super().__init__(f'Failed to fetch URL: HTTP {status_code} {reason or ""}'.rstrip())
        self.url = url
        self.status_code = status_code
        self.reason = reason

    @property
    def http_status(self) -> int:
        return self.status_code


class Forbidden(FetchFailed):
    """403 from the target, usually a bot wall"""

    def __init__(self, url: str, reason: Optional[str] = 'Forbidden'):
        super().__init__(url, 403, reason)


class FetchError(AnalysisError):
    """Transport failure (DNS, TLS, timeout, connection reset)"""
    http_status = 502

    def __init__(self, url: str, cause: Exception):
        super().__init__(f'Error fetching URL: {cause}')
        self.url = url
        self.cause = cause
