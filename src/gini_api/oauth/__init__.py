"""OAuth2 authentication for the Gini API.

Example:
    ```python
    from gini_api.oauth import TokenManager, resolve_strategy

    strategy = resolve_strategy(username="me@example.com", password="secret")
    token = await manager.acquire(strategy)
    await manager.ensure_fresh(token)  # before each request
    await manager.revoke(token)  # on logout
    ```
"""

from __future__ import annotations

from gini_api.oauth.manager import TokenManager
from gini_api.oauth.models import (
    AuthorizationCode,
    AuthStrategy,
    ResourceOwnerPassword,
    Token,
    TokenKind,
    TokenResponse,
    TrustedGateway,
    resolve_strategy,
)


__all__ = [
    "AuthStrategy",
    "AuthorizationCode",
    "ResourceOwnerPassword",
    "Token",
    "TokenKind",
    "TokenManager",
    "TokenResponse",
    "TrustedGateway",
    "resolve_strategy",
]
