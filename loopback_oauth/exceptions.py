"""
Loopback OAuth Exceptions

Errors raised by the token exchanger and the code exchange helpers.
Exceptions raised by a caller-supplied callback handler are not wrapped;
they propagate out of the exchange unchanged.
"""

from typing import Optional


class LoopbackOAuthError(Exception):
    """Base class for all loopback OAuth errors."""


class ListenerError(LoopbackOAuthError):
    """The local callback listener failed to start or stopped unexpectedly."""

    def __init__(self, message: str, host: str = "", port: Optional[int] = None):
        super().__init__(message)
        self.host = host
        self.port = port


class ExchangeTimeoutError(LoopbackOAuthError):
    """No callback reached the listener before the deadline."""

    def __init__(self, timeout: float):
        super().__init__(
            f"No authorization callback received within {timeout:g} seconds"
        )
        self.timeout = timeout


class AuthorizationDeniedError(LoopbackOAuthError):
    """The authorization server redirected back with an OAuth error."""

    def __init__(self, error: str, error_description: Optional[str] = None):
        message = f"Authorization failed: {error}"
        if error_description:
            message = f"{message} ({error_description})"
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class MissingAuthorizationCodeError(LoopbackOAuthError):
    """The redirect carried neither an authorization code nor an error."""

    def __init__(self, message: str = "No authorization code in callback request"):
        super().__init__(message)


class TokenEndpointError(LoopbackOAuthError):
    """The token endpoint rejected the code exchange or returned an unusable body."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
