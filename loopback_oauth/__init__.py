"""
Loopback OAuth

Receives an OAuth 2.0 authorization code on a short-lived local listener
and exchanges it for a token.
"""

from .code_exchange import authorization_code_handler, build_authorization_url
from .exceptions import (
    AuthorizationDeniedError,
    ExchangeTimeoutError,
    ListenerError,
    LoopbackOAuthError,
    MissingAuthorizationCodeError,
    TokenEndpointError,
)
from .exchanger import (
    DEFAULT_LISTENER_PATH,
    DEFAULT_LISTENER_PORT,
    AuthCodeRequestHandler,
    CallbackRequest,
    OAuthTokenExchanger,
    get_default_callback_url,
)
from .token import OAuthToken

__version__ = "1.0.0"

__all__ = [
    "AuthCodeRequestHandler",
    "AuthorizationDeniedError",
    "CallbackRequest",
    "DEFAULT_LISTENER_PATH",
    "DEFAULT_LISTENER_PORT",
    "ExchangeTimeoutError",
    "ListenerError",
    "LoopbackOAuthError",
    "MissingAuthorizationCodeError",
    "OAuthToken",
    "OAuthTokenExchanger",
    "TokenEndpointError",
    "authorization_code_handler",
    "build_authorization_url",
    "get_default_callback_url",
]
