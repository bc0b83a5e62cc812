"""Exception taxonomy for the Gini API client.

Every error raised by the client derives from :class:`ApiError`. When an
HTTP response is available the error extracts the request method, URL,
status code and the server's ``{message, requestId}`` error body from it.
"""

from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING, Any

import httpx


if TYPE_CHECKING:
    from gini_api.api.negotiation import ApiResponse


__all__ = [
    "UNDEFINED",
    "ApiError",
    "DocumentError",
    "OAuthError",
    "ProcessingError",
    "RequestError",
    "SearchError",
    "UploadError",
]

# Placeholder for server error fields that could not be read from the body.
UNDEFINED = "undefined"


class ApiError(Exception):
    """Base exception for all Gini API client errors.

    Attributes:
        message: Human-readable error description.
        response: The HTTP response that caused this error, if available.
        http_method: HTTP method of the failed request.
        request_url: URL of the failed request.
        http_status: HTTP status code of the response.
        server_message: ``message`` field of the server's error body.
        server_request_id: ``requestId`` field of the server's error body.
        user_identifier: ``X-User-Identifier`` sent with the request, if any.
        document_id: ID of the document involved, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        response: httpx.Response | ApiResponse | None = None,
        document_id: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            response: The HTTP response that caused this error.
            document_id: ID of the document the error relates to.
        """
        super().__init__(message)
        if response is not None and not isinstance(response, httpx.Response):
            response = response.response

        self.message = message
        self.response = response
        self.document_id = document_id
        self.http_method: str | None = None
        self.request_url: str | None = None
        self.http_status: int | None = None
        self.server_message: str | None = None
        self.server_request_id: str | None = None
        self.user_identifier: str | None = None

        if response is not None:
            self._parse_response(response)

    @property
    def kind(self) -> str:
        """Name of the error class (e.g. ``"UploadError"``)."""
        return type(self).__name__

    @property
    def details(self) -> str | None:
        """Summary of the failed call, or None without a response."""
        if self.response is None:
            return None
        return (
            f"{self.http_method} {self.request_url} : {self.http_status} - "
            f"{self.server_message} (request Id: {self.server_request_id})"
        )

    def _parse_response(self, response: httpx.Response) -> None:
        self.http_status = response.status_code
        self.server_message = UNDEFINED
        self.server_request_id = UNDEFINED

        # Responses built by hand (tests, mocks) have no request attached
        with contextlib.suppress(RuntimeError):
            request = response.request
            self.http_method = request.method
            self.request_url = str(request.url)
            self.user_identifier = request.headers.get("X-User-Identifier")

        if not response.content:
            return
        body: Any = None
        with contextlib.suppress(ValueError):
            body = json.loads(response.content)
        if isinstance(body, dict):
            self.server_message = body.get("message", UNDEFINED)
            self.server_request_id = body.get("requestId", UNDEFINED)

    def __str__(self) -> str:
        """Return string representation with status code if available."""
        if self.http_status is not None:
            return f"{self.message} (status={self.http_status})"
        return self.message


class OAuthError(ApiError):
    """Raised for identity provider and token lifecycle failures.

    Covers code exchange, password login, refresh and revocation failures,
    as well as CSRF state mismatches and malformed redirect locations.
    """


class RequestError(ApiError):
    """Raised when an authenticated API call fails.

    This includes any HTTP status >= 400 and transport-level failures
    other than timeouts.
    """


class ProcessingError(ApiError):
    """Raised when a deadline is exceeded.

    Applies to single requests (processing timeout), uploads (upload
    timeout) and the upload-and-poll sequence. ``document_id`` is set when
    a document was already created so the caller can still clean it up.
    """


class UploadError(ApiError):
    """Raised when the initial document upload does not return 201."""


class DocumentError(ApiError):
    """Raised for failures on a document or its sub-resources.

    Examples are a failed fetch, an unknown extraction label, rejected
    feedback (HTTP 422) or a failed error report.
    """


class SearchError(ApiError):
    """Raised when a search query does not return 200."""
