"""
Authorization Code Exchange

Helpers for the two ends of the loopback flow that talk to the
authorization server: building the authorization URL the browser is sent to,
and a ready-made callback handler that trades the returned authorization
code for a token at the token endpoint.
"""

from typing import Dict, List, Optional
from urllib.parse import urlencode

import httpx

from loopback_oauth._logging import verbose_logger
from loopback_oauth.exceptions import (
    AuthorizationDeniedError,
    MissingAuthorizationCodeError,
    TokenEndpointError,
)
from loopback_oauth.exchanger import AuthCodeRequestHandler, CallbackRequest
from loopback_oauth.token import OAuthToken

DEFAULT_TOKEN_REQUEST_TIMEOUT = 30.0


def build_authorization_url(
    authorize_url: str,
    client_id: str,
    redirect_uri: str,
    scopes: Optional[List[str]] = None,
    state: Optional[str] = None,
    extra_params: Optional[Dict[str, str]] = None,
) -> str:
    """
    Build the OAuth authorization URL.

    Args:
        authorize_url: Authorization endpoint of the authorization server
        client_id: OAuth client identifier
        redirect_uri: Callback URL served by the local listener
        scopes: OAuth scopes, joined with spaces
        state: Opaque state value passed through unchanged
        extra_params: Additional provider-specific query parameters

    Returns:
        Complete authorization URL
    """
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
    }
    if scopes:
        params["scope"] = " ".join(scopes)
    if state:
        params["state"] = state
    if extra_params:
        params.update(extra_params)

    separator = "&" if "?" in authorize_url else "?"
    auth_url = f"{authorize_url}{separator}{urlencode(params)}"

    verbose_logger.debug(f"Built authorization URL for client {client_id}")

    return auth_url


def authorization_code_handler(
    token_url: str,
    client_id: str,
    redirect_uri: str,
    client_secret: Optional[str] = None,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TOKEN_REQUEST_TIMEOUT,
) -> AuthCodeRequestHandler:
    """
    Create a callback handler that exchanges the authorization code for a token.

    Args:
        token_url: Token endpoint of the authorization server
        client_id: OAuth client identifier
        redirect_uri: Redirect URI used in the authorization request
        client_secret: Client secret for confidential clients
        client: HTTP client to use; a short-lived one is created per call if omitted
        timeout: Token request timeout in seconds

    Returns:
        Handler suitable for ``OAuthTokenExchanger``
    """

    def handle(request: CallbackRequest) -> OAuthToken:
        if request.error:
            raise AuthorizationDeniedError(request.error, request.error_description)

        code = request.code
        if not code:
            raise MissingAuthorizationCodeError()

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": client_id,
        }
        if client_secret:
            data["client_secret"] = client_secret

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

        verbose_logger.info("Exchanging authorization code for tokens")
        verbose_logger.debug(f"Token URL: {token_url}")

        try:
            if client is not None:
                response = client.post(token_url, data=data, headers=headers, timeout=timeout)
            else:
                with httpx.Client() as session:
                    response = session.post(token_url, data=data, headers=headers, timeout=timeout)
        except httpx.HTTPError as e:
            verbose_logger.error(f"Token request to {token_url} failed: {e}")
            raise TokenEndpointError(f"Token request failed: {e}") from e

        return _parse_token_response(response)

    return handle


def _parse_token_response(response: httpx.Response) -> OAuthToken:
    if not response.is_success:
        error_text = response.text
        verbose_logger.error(
            f"Token exchange failed: {response.status_code} - {error_text}"
        )
        raise TokenEndpointError(
            f"Token endpoint returned {response.status_code}: {error_text}",
            status_code=response.status_code,
            response_text=error_text,
        )

    try:
        token_data = response.json()
    except ValueError as e:
        raise TokenEndpointError(
            f"Token endpoint returned a non-JSON body: {e}",
            status_code=response.status_code,
            response_text=response.text,
        ) from e

    if not isinstance(token_data, dict) or "access_token" not in token_data:
        raise TokenEndpointError(
            "Token endpoint response has no access_token",
            status_code=response.status_code,
            response_text=response.text,
        )

    try:
        token = OAuthToken.from_token_response(token_data)
    except (TypeError, ValueError) as e:
        raise TokenEndpointError(
            f"Token endpoint returned an invalid expires_in: {token_data.get('expires_in')!r}",
            status_code=response.status_code,
            response_text=response.text,
        ) from e

    verbose_logger.info(
        f"Successfully exchanged code for tokens. Token expires at: {token.expiry}"
    )

    return token
