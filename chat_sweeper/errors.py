"""
Error taxonomy for Chat Sweeper
"""

from typing import Optional


class SweeperError(Exception):
    """Base class for every error raised by the sweeper core"""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SweeperError):
    """Malformed or empty input (missing cURL text, no conversation ids, ...)"""
    kind = "validation"


class AuthenticationError(SweeperError):
    """Missing/invalid Authorization header, 401/403, or an empty profile"""
    kind = "authentication"


class NetworkError(SweeperError):
    """Transport failure or a non-auth error status"""
    kind = "network"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        # None means no response was received at all
        self.status_code = status_code


class ClassificationParseError(SweeperError):
    """Classifier response could not be resolved to a JSON array"""
    kind = "classification_parse"
