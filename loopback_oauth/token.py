"""
OAuth Token

Value type for the token issued by an authorization server's token endpoint.
The exchanger never looks inside a token; this type is what the bundled
code exchange handler produces.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

# Fields of a token endpoint response mapped onto OAuthToken attributes
_KNOWN_FIELDS = {"access_token", "token_type", "refresh_token", "expires_in", "scope"}


@dataclass
class OAuthToken:
    """Credentials returned by an OAuth2 token endpoint."""
    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None  # timezone-aware, UTC
    scope: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_token_response(
        cls,
        data: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> "OAuthToken":
        """
        Build a token from a decoded token endpoint response.

        Args:
            data: JSON body of the token response
            now: Reference time for ``expires_in`` (defaults to current UTC time)

        Returns:
            OAuthToken with ``expiry`` computed from ``expires_in`` when present

        Raises:
            KeyError: If ``access_token`` is missing
        """
        now = now or datetime.now(timezone.utc)

        expiry = None
        expires_in = data.get("expires_in")
        if expires_in not in (None, ""):
            expiry = now + timedelta(seconds=int(expires_in))

        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            refresh_token=data.get("refresh_token"),
            expiry=expiry,
            scope=data.get("scope"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )

    def is_expired(self, buffer_seconds: int = 0, now: Optional[datetime] = None) -> bool:
        """
        Check if the token is expired or will expire within ``buffer_seconds``.

        Tokens without an expiry never expire.
        """
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now + timedelta(seconds=buffer_seconds) >= self.expiry

    def get_auth_headers(self) -> Dict[str, str]:
        # Token types are case-insensitive; normalise the common one
        token_type = "Bearer" if self.token_type.lower() == "bearer" else self.token_type
        return {"Authorization": f"{token_type} {self.access_token}"}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
        }
        if self.refresh_token is not None:
            data["refresh_token"] = self.refresh_token
        if self.expiry is not None:
            data["expiry"] = self.expiry.isoformat()
        if self.scope is not None:
            data["scope"] = self.scope
        data.update(self.extra)
        return data
