"""OAuth2 token lifecycle: acquisition, refresh-before-expiry and revocation."""

from __future__ import annotations

import asyncio
import base64
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
from pydantic import ValidationError

from gini_api.exceptions import OAuthError
from gini_api.oauth.models import (
    AuthorizationCode,
    ResourceOwnerPassword,
    Token,
    TokenKind,
    TokenResponse,
    TrustedGateway,
)
from gini_api.observability import get_logger


if TYPE_CHECKING:
    from gini_api.oauth.models import AuthStrategy


__all__ = ["TokenManager"]


class TokenManager:
    """Owns the OAuth2 token of a session.

    The manager talks to the identity provider's token endpoint and keeps
    a single :class:`Token` usable: :meth:`ensure_fresh` is called before
    every authenticated request and refreshes the token in place when it is
    about to expire.

    Refreshes are serialized with an :class:`asyncio.Lock`, so concurrent
    requests sharing one token trigger at most one refresh.

    Attributes:
        oauth_site: Base URL of the identity provider.
        api_uri: Base URL of the API (hosts the token resource).
        redirect_uri: Redirect URI registered for the client.
    """

    TOKEN_PATH = "/oauth/token"
    AUTHORIZE_PATH = "/oauth/authorize"
    REFRESH_MARGIN = timedelta(seconds=60)
    DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

    def __init__(  # noqa: PLR0913
        self,
        http: httpx.AsyncClient,
        *,
        client_id: str,
        client_secret: str,
        oauth_site: str,
        api_uri: str,
        redirect_uri: str = "http://localhost",
        timeout: httpx.Timeout | None = None,
        logger: Any = None,  # noqa: ANN401
    ) -> None:
        """Initialize the token manager.

        Args:
            http: HTTP client used for identity provider calls.
            client_id: OAuth2 client id.
            client_secret: OAuth2 client secret.
            oauth_site: Base URL of the identity provider.
            api_uri: Base URL of the API.
            redirect_uri: Redirect URI used in the authorization code flow.
            timeout: Timeout for token endpoint calls.
            logger: structlog logger; defaults to the module logger.
        """
        self.oauth_site = oauth_site.rstrip("/")
        self.api_uri = api_uri.rstrip("/")
        self.redirect_uri = redirect_uri
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._lock = asyncio.Lock()
        self._logger = logger or get_logger(__name__)

    @property
    def token_url(self) -> str:
        """URL of the token endpoint."""
        return f"{self.oauth_site}{self.TOKEN_PATH}"

    @property
    def client_credentials(self) -> str:
        """Base64 encoded ``client_id:client_secret``."""
        raw = f"{self._client_id}:{self._client_secret}".encode()
        return base64.b64encode(raw).decode("ascii")

    # -------------------------------------------------------------------------
    # Acquisition
    # -------------------------------------------------------------------------

    async def acquire(self, strategy: AuthStrategy) -> Token:
        """Obtain a token for the given strategy.

        Args:
            strategy: The strategy selected by ``resolve_strategy``.

        Returns:
            A new token.

        Raises:
            OAuthError: If the identity provider rejects the request.
        """
        match strategy:
            case TrustedGateway():
                self._logger.info("token_acquired", strategy="trusted_gateway")
                return Token(
                    access_value=self.client_credentials,
                    token_kind=TokenKind.BASIC,
                )
            case AuthorizationCode(code=code):
                form = {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                }
                failure = "Failed to exchange auth_code for token"
                name = "authorization_code"
            case ResourceOwnerPassword(username=username, password=password):
                form = {
                    "grant_type": "password",
                    "username": username,
                    "password": password,
                }
                failure = "Failed to acquire token"
                name = "password"
            case _:
                msg = f"Unsupported authentication strategy: {strategy!r}"
                raise TypeError(msg)

        token = await self._request_token(form, failure=failure)
        self._logger.info(
            "token_acquired",
            strategy=name,
            expires_at=token.expires_at.isoformat() if token.expires_at else None,
            refreshable=token.refresh_value is not None,
        )
        return token

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    async def ensure_fresh(self, token: Token) -> Token:
        """Refresh the token in place if it expires within 60 seconds.

        Tokens without a refresh value are returned untouched.

        Args:
            token: The session token.

        Returns:
            The same token object.
        """
        if not self._needs_refresh(token):
            return token
        async with self._lock:
            # Another request may have refreshed while we waited
            if self._needs_refresh(token):
                await self._refresh(token)
        return token

    async def refresh(self, token: Token) -> Token:
        """Refresh the token in place regardless of its expiry.

        Args:
            token: The session token; must carry a refresh value.

        Returns:
            The same token object with new values.

        Raises:
            OAuthError: If there is no refresh value or the refresh fails.
        """
        async with self._lock:
            await self._refresh(token)
        return token

    def _needs_refresh(self, token: Token) -> bool:
        return bool(token.refresh_value) and token.expires_within(
            self.REFRESH_MARGIN
        )

    async def _refresh(self, token: Token) -> None:
        if not token.refresh_value:
            msg = "Token has no refresh value"
            raise OAuthError(msg)
        fresh = await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": token.refresh_value},
            failure="Failed to refresh token",
        )
        token.update_from(fresh)
        self._logger.debug(
            "token_refreshed",
            expires_at=token.expires_at.isoformat() if token.expires_at else None,
        )

    # -------------------------------------------------------------------------
    # Revocation
    # -------------------------------------------------------------------------

    async def revoke(self, token: Token) -> None:
        """Destroy the token on the server.

        A refreshable token is refreshed first so the deletion call itself
        is authorized. Basic (gateway) credentials have no server-side
        resource and are left alone.

        Args:
            token: The session token.

        Raises:
            OAuthError: If the deletion does not return 204.
        """
        if token.token_kind is TokenKind.BASIC:
            self._logger.debug("token_revoke_skipped", reason="basic_auth")
            return

        if token.refresh_value:
            await self.refresh(token)

        resource = f"/accessToken/{token.access_value}"
        try:
            response = await self._http.delete(
                f"{self.api_uri}{resource}",
                headers={"Authorization": token.authorization_header},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            msg = f"Failed to destroy token: {exc}"
            raise OAuthError(msg) from exc

        if response.status_code != 204:  # noqa: PLR2004
            msg = f"Failed to destroy token {resource}"
            raise OAuthError(msg, response=response)
        self._logger.info("token_revoked")

    # -------------------------------------------------------------------------
    # Authorization code flow helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def new_state() -> str:
        """Generate a random CSRF ``state`` value."""
        return secrets.token_hex(16)

    def authorize_url(self, state: str) -> str:
        """Build the URL a user agent is sent to for authorization.

        Args:
            state: CSRF token echoed back in the redirect.

        Returns:
            The authorization URL.
        """
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self._client_id,
                "redirect_uri": self.redirect_uri,
                "state": state,
            }
        )
        return f"{self.oauth_site}{self.AUTHORIZE_PATH}?{query}"

    @staticmethod
    def extract_auth_code(location: str, state: str) -> str:
        """Extract the authorization code from a redirect location.

        Args:
            location: The redirect URL received from the identity provider.
            state: The CSRF token sent with the authorization request.

        Returns:
            The authorization code.

        Raises:
            OAuthError: If the location cannot be parsed, the state does not
                match, or no code is present.
        """
        try:
            params = parse_qs(urlsplit(location).query, strict_parsing=True)
        except ValueError as exc:
            msg = f"Failed to parse location header: {exc}"
            raise OAuthError(msg) from exc

        received = params.get("state", [None])[0]
        if received != state:
            msg = f"CSRF token mismatch detected (should={state}, is={received})"
            raise OAuthError(msg)

        code = params.get("code", [""])[0]
        if not code:
            msg = f"Failed to extract code from location {location}"
            raise OAuthError(msg)
        return code

    # -------------------------------------------------------------------------
    # Token endpoint
    # -------------------------------------------------------------------------

    async def _request_token(self, form: dict[str, str], *, failure: str) -> Token:
        """POST a grant to the token endpoint and parse the response."""
        try:
            response = await self._http.post(
                self.token_url,
                data=form,
                headers={
                    "Authorization": f"Basic {self.client_credentials}",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            msg = f"{failure}: {exc}"
            raise OAuthError(msg) from exc

        if not response.is_success:
            raise OAuthError(failure, response=response)

        try:
            body = response.json()
        except ValueError as exc:
            msg = f"{failure}: token response is not JSON"
            raise OAuthError(msg, response=response) from exc

        if isinstance(body, dict) and "error" in body:
            detail = body.get("error_description") or body["error"]
            msg = f"{failure}: {detail}"
            raise OAuthError(msg, response=response)

        try:
            return TokenResponse.model_validate(body).to_token()
        except ValidationError as exc:
            msg = f"{failure}: malformed token response"
            raise OAuthError(msg, response=response) from exc
