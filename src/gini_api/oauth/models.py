"""Token and authentication strategy models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


__all__ = [
    "AuthStrategy",
    "AuthorizationCode",
    "ResourceOwnerPassword",
    "Token",
    "TokenKind",
    "TokenResponse",
    "TrustedGateway",
    "resolve_strategy",
]


class TokenKind(StrEnum):
    """Authorization scheme of a token.

    Attributes:
        BEARER: OAuth2 access token issued by the identity provider.
        BASIC: HTTP Basic credentials built from the client id and secret.
    """

    BEARER = "bearer"
    BASIC = "basic"


@dataclass
class Token:
    """Credential used to authorize API requests.

    A token is refreshed in place: :meth:`update_from` copies new values
    onto the existing object so every holder sees the refreshed credential.

    Attributes:
        access_value: The access token (or Base64 credentials for BASIC).
        token_kind: Authorization scheme.
        expires_at: Absolute expiry time, or None if the token never expires.
        refresh_value: Refresh token, if the provider issued one.
    """

    access_value: str
    token_kind: TokenKind = TokenKind.BEARER
    expires_at: datetime | None = None
    refresh_value: str | None = None

    @property
    def authorization_header(self) -> str:
        """Value for the ``Authorization`` request header."""
        scheme = "Basic" if self.token_kind is TokenKind.BASIC else "Bearer"
        return f"{scheme} {self.access_value}"

    def expires_within(self, margin: timedelta, *, now: datetime | None = None) -> bool:
        """Return True if the token expires before ``now + margin``."""
        if self.expires_at is None:
            return False
        current = now or datetime.now(UTC)
        return self.expires_at < current + margin

    @property
    def is_expired(self) -> bool:
        """Return True if the token has already expired."""
        return self.expires_within(timedelta(0))

    def update_from(self, other: Token) -> None:
        """Copy all values of ``other`` onto this token.

        The refresh value is kept when ``other`` does not carry one.
        """
        self.access_value = other.access_value
        self.token_kind = other.token_kind
        self.expires_at = other.expires_at
        if other.refresh_value:
            self.refresh_value = other.refresh_value


class TokenResponse(BaseModel):
    """Successful response body of the identity provider's token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    refresh_token: str | None = None

    def to_token(self, *, now: datetime | None = None) -> Token:
        """Build a bearer :class:`Token` with an absolute expiry time."""
        expires_at = None
        if self.expires_in is not None:
            expires_at = (now or datetime.now(UTC)) + timedelta(
                seconds=self.expires_in
            )
        return Token(
            access_value=self.access_token,
            token_kind=TokenKind.BEARER,
            expires_at=expires_at,
            refresh_value=self.refresh_token,
        )


@dataclass(frozen=True)
class AuthorizationCode:
    """Exchange an OAuth2 authorization code for a token."""

    code: str


@dataclass(frozen=True)
class ResourceOwnerPassword:
    """Log in with username and password (password grant)."""

    username: str
    password: str


@dataclass(frozen=True)
class TrustedGateway:
    """HTTP Basic auth with the client credentials.

    Lets a backend act on behalf of anonymous end users, identified per
    request through the ``X-User-Identifier`` header.
    """


type AuthStrategy = AuthorizationCode | ResourceOwnerPassword | TrustedGateway


def resolve_strategy(
    *,
    auth_code: str | None = None,
    username: str | None = None,
    password: str | None = None,
) -> AuthStrategy:
    """Select the authentication strategy for the given credentials.

    Priority is authorization code, then username/password, then the
    trusted gateway. Empty strings count as missing.

    Args:
        auth_code: OAuth2 authorization code.
        username: API username.
        password: API password.

    Returns:
        The selected strategy.
    """
    if auth_code:
        return AuthorizationCode(code=auth_code)
    if username and password:
        return ResourceOwnerPassword(username=username, password=password)
    return TrustedGateway()
