"""Async Python client for the Gini document-processing API.

Example:
    ```python
    from gini_api import GiniClient

    async with GiniClient("client_id", "client_secret") as client:
        await client.login(username="me@example.com", password="secret")
        doc = await client.upload(Path("invoice.pdf"))
        extractions = await client.extractions(doc)
        print(extractions.get("iban"))
    ```
"""

from __future__ import annotations

from gini_api.api import (
    DocumentHandle,
    DocumentSet,
    DocumentState,
    Extraction,
    ExtractionFeedback,
    Extractions,
    GiniClient,
    Layout,
)
from gini_api.exceptions import (
    ApiError,
    DocumentError,
    OAuthError,
    ProcessingError,
    RequestError,
    SearchError,
    UploadError,
)
from gini_api.oauth import Token, TokenKind, TokenManager


__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "DocumentError",
    "DocumentHandle",
    "DocumentSet",
    "DocumentState",
    "Extraction",
    "ExtractionFeedback",
    "Extractions",
    "GiniClient",
    "Layout",
    "OAuthError",
    "ProcessingError",
    "RequestError",
    "SearchError",
    "Token",
    "TokenKind",
    "TokenManager",
    "UploadError",
    "__version__",
]
