"""Async client for the Gini document-processing API."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import ValidationError

from gini_api.api.documents import Extractions, Layout
from gini_api.api.models import DocumentHandle, DocumentSet, Duration
from gini_api.api.negotiation import ApiResponse, ResponseParsers, version_media_type
from gini_api.exceptions import (
    ApiError,
    DocumentError,
    OAuthError,
    ProcessingError,
    RequestError,
    SearchError,
    UploadError,
)
from gini_api.oauth import Token, TokenManager, resolve_strategy
from gini_api.observability import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable

    from gini_api.config import Settings


__all__ = ["GiniClient", "ProgressCallback"]


type ProgressCallback = Callable[[DocumentHandle], Any]


class GiniClient:
    """Async client for the Gini API.

    The client is the session: it holds the API credentials and settings,
    owns the current :class:`Token` (through a :class:`TokenManager`) and
    dispatches every authenticated request.

    Example:
        ```python
        async with GiniClient("my_client_id", "my_client_secret") as client:
            await client.login(username="me@example.com", password="secret")
            doc = await client.upload(Path("invoice.pdf"))
            if doc.is_successful:
                extractions = await client.extractions(doc)
                print(extractions.get("amountToPay"))
            await client.logout()
        ```

    Attributes:
        client_id: OAuth2 client id.
        oauth_site: Base URL of the identity provider.
        oauth_redirect: Redirect URI for the authorization code flow.
        api_uri: Base URL of the API.
        api_version: Default API version for content negotiation.
        api_type: Default representation (``json`` or ``xml``).
        product: Product name used in vendor media types.
        upload_timeout: Seconds allowed for a document upload.
        processing_timeout: Seconds allowed for a single request, and for
            the polling after an upload.
        token: The current token, or None before login.
    """

    DEFAULT_OAUTH_SITE = "https://user.gini.net"
    DEFAULT_OAUTH_REDIRECT = "http://localhost"
    DEFAULT_API_URI = "https://api.gini.net"
    DEFAULT_API_VERSION = "v1"
    DEFAULT_API_TYPE = "json"
    DEFAULT_PRODUCT = "gini"
    DEFAULT_UPLOAD_TIMEOUT = 90.0
    DEFAULT_PROCESSING_TIMEOUT = 180.0
    DEFAULT_POLL_INTERVAL = 0.5
    CONNECT_RETRIES = 3
    INCUBATOR_VERSION = "incubator"

    def __init__(  # noqa: PLR0913
        self,
        client_id: str,
        client_secret: str,
        *,
        oauth_site: str = DEFAULT_OAUTH_SITE,
        oauth_redirect: str = DEFAULT_OAUTH_REDIRECT,
        api_uri: str = DEFAULT_API_URI,
        api_version: str = DEFAULT_API_VERSION,
        api_type: str = DEFAULT_API_TYPE,
        product: str = DEFAULT_PRODUCT,
        upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT,
        processing_timeout: float = DEFAULT_PROCESSING_TIMEOUT,
        logger: Any = None,  # noqa: ANN401
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client_id: OAuth2 client id.
            client_secret: OAuth2 client secret.
            oauth_site: Base URL of the identity provider.
            oauth_redirect: Redirect URI for the authorization code flow.
            api_uri: Base URL of the API.
            api_version: Default API version (e.g. "v1").
            api_type: Default representation ("json" or "xml").
            product: Product name used in vendor media types.
            upload_timeout: Seconds allowed for a document upload.
            processing_timeout: Seconds allowed per request and per poll loop.
            logger: structlog logger to use; defaults to the module logger.
            transport: Optional custom transport for testing or advanced config.

        Raises:
            ValueError: If the client id or secret is missing.
        """
        for name, value in (("client_id", client_id), ("client_secret", client_secret)):
            if not value:
                msg = f"Mandatory option key is missing: {name}"
                raise ValueError(msg)

        self.client_id = client_id
        self.oauth_site = oauth_site.rstrip("/")
        self.oauth_redirect = oauth_redirect
        self.api_uri = api_uri.rstrip("/")
        self.api_version = api_version
        self.api_type = api_type
        self.product = product
        self.upload_timeout = upload_timeout
        self.processing_timeout = processing_timeout
        self.token: Token | None = None

        self._api_origin = "https://" + httpx.URL(self.api_uri).netloc.decode("ascii")
        self._parsers = ResponseParsers.for_product(
            product, (api_version, self.INCUBATOR_VERSION)
        )
        self._logger = logger or get_logger(__name__)
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(processing_timeout, connect=10.0),
            transport=transport
            or httpx.AsyncHTTPTransport(retries=self.CONNECT_RETRIES),
        )
        self.tokens = TokenManager(
            self._http,
            client_id=client_id,
            client_secret=client_secret,
            oauth_site=self.oauth_site,
            api_uri=self.api_uri,
            redirect_uri=oauth_redirect,
            logger=self._logger.bind(component="oauth"),
        )
        self._logger.info("client_initialized", api_uri=self.api_uri)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        logger: Any = None,  # noqa: ANN401
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        """Create a client from loaded application settings.

        Raises:
            ValueError: If the client id or secret is not configured.
        """
        return cls(
            settings.client.id or "",
            settings.client.secret or "",
            oauth_site=settings.oauth.site,
            oauth_redirect=settings.oauth.redirect_uri,
            api_uri=settings.api.url,
            api_version=settings.api.version,
            api_type=settings.api.type,
            product=settings.api.product,
            upload_timeout=settings.timeouts.upload,
            processing_timeout=settings.timeouts.processing,
            logger=logger,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        """Enter async context."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context and close the HTTP client."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if not self._http.is_closed:
            await self._http.aclose()

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def login(
        self,
        *,
        auth_code: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> Token:
        """Acquire a token and make it the session token.

        The strategy is chosen from the supplied credentials: authorization
        code, then username/password, then trusted gateway (HTTP Basic with
        the client credentials).

        Args:
            auth_code: OAuth2 authorization code.
            username: API username.
            password: API password.

        Returns:
            The session token.

        Raises:
            OAuthError: If the identity provider rejects the credentials.
        """
        strategy = resolve_strategy(
            auth_code=auth_code,
            username=username,
            password=password,
        )
        self.token = await self.tokens.acquire(strategy)
        return self.token

    async def logout(self) -> None:
        """Revoke the session token.

        Raises:
            OAuthError: If the token cannot be destroyed.
        """
        if self.token is None:
            return
        await self.tokens.revoke(self.token)
        self.token = None

    def _require_token(self) -> Token:
        if self.token is None:
            msg = "Not authenticated: call login() first"
            raise OAuthError(msg)
        return self.token

    # -------------------------------------------------------------------------
    # Request Dispatch
    # -------------------------------------------------------------------------

    def version_media_type(
        self,
        media_type: str | None = None,
        version: str | None = None,
    ) -> str:
        """Return the vendor media type for a representation and API version."""
        return version_media_type(
            self.product,
            version or self.api_version,
            media_type or self.api_type,
        )

    def version_header(
        self,
        media_type: str | None = None,
        version: str | None = None,
    ) -> dict[str, str]:
        """Return the ``Accept`` header for a representation and API version.

        Example:
            >>> client.version_header("xml")
            {'Accept': 'application/vnd.gini.v1+xml'}
            >>> client.version_header(version="incubator")
            {'Accept': 'application/vnd.gini.incubator+json'}
        """
        return {"Accept": self.version_media_type(media_type, version)}

    @staticmethod
    def user_identifier_header(user_identifier: str | None) -> dict[str, str]:
        """Return the ``X-User-Identifier`` header, or nothing if unset."""
        if user_identifier:
            return {"X-User-Identifier": user_identifier}
        return {}

    def resolve_url(self, resource: str) -> str:
        """Re-root a resource path or URL on the API host over HTTPS.

        The path and query string of ``resource`` are kept; its scheme and
        host (if any) are replaced.
        """
        raw_path = httpx.URL(resource).raw_path.decode("ascii")
        if not raw_path.startswith("/"):
            raw_path = f"/{raw_path}"
        return f"{self._api_origin}{raw_path}"

    async def request(  # noqa: PLR0913
        self,
        method: str,
        resource: str,
        *,
        media_type: str | None = None,
        version: str | None = None,
        headers: Mapping[str, str] | None = None,
        user_identifier: str | None = None,
        params: Mapping[str, Any] | None = None,
        json: Any | None = None,  # noqa: ANN401
        content: bytes | str | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> ApiResponse:
        """Execute an authenticated API request.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            resource: Resource path or URL; re-rooted on the API host.
            media_type: Wanted representation ("json" or "xml").
            version: API version override (e.g. "incubator").
            headers: Additional headers; these override the negotiated ones.
            user_identifier: End user to act for (gateway auth).
            params: Query parameters.
            json: JSON body.
            content: Raw body.
            timeout: Deadline in seconds (default: processing timeout).

        Returns:
            The response with content-negotiated parsing.

        Raises:
            ProcessingError: If the deadline is exceeded.
            RequestError: For HTTP status >= 400 and transport failures.
            OAuthError: If the token cannot be refreshed.
        """
        request_headers = httpx.Headers(self.version_header(media_type, version))
        request_headers.update(self.user_identifier_header(user_identifier))
        if headers:
            request_headers.update(headers)

        url = self.resolve_url(resource)
        deadline = timeout if timeout is not None else self.processing_timeout

        try:
            async with asyncio.timeout(deadline):
                response = await self._send(
                    method,
                    url,
                    headers=request_headers,
                    params=dict(params) if params else None,
                    json=json,
                    content=content,
                    timeout=deadline,
                )
        except TimeoutError as exc:
            msg = f"API request timed out: {method} {resource}"
            raise ProcessingError(msg) from exc

        if response.is_error:
            msg = f"API request failed: {method} {resource}"
            raise RequestError(msg, response=response)
        return ApiResponse(response, self._parsers)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: httpx.Headers,
        timeout: float,  # noqa: ASYNC109
        **kwargs: Any,  # noqa: ANN401
    ) -> httpx.Response:
        """Send a request with a fresh token; map transport failures."""
        token = await self.tokens.ensure_fresh(self._require_token())
        headers["Authorization"] = token.authorization_header
        log = self._logger.bind(method=method, url=url)

        try:
            response = await self._http.request(
                method,
                url,
                headers=headers,
                timeout=timeout,
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            msg = f"API request timed out: {method} {url}"
            raise ProcessingError(msg) from exc
        except httpx.HTTPError as exc:
            log.warning("request_failed", error=str(exc))
            msg = f"API request failed: {method} {url} ({exc})"
            raise RequestError(msg) from exc

        log.debug("api_response", status_code=response.status_code)
        return response

    async def _call(  # noqa: PLR0913
        self,
        method: str,
        resource: str,
        *,
        expect: int,
        error: type[ApiError],
        message: str,
        document_id: str | None = None,
        **kwargs: Any,  # noqa: ANN401
    ) -> ApiResponse:
        """Request ``resource`` and raise ``error`` unless status is ``expect``.

        HTTP failures are re-raised as ``error``; transport failures and
        timeouts propagate unchanged.
        """
        try:
            response = await self.request(method, resource, **kwargs)
        except RequestError as exc:
            if exc.http_status is None:
                raise
            raise error(message, response=exc.response, document_id=document_id) from exc

        if response.status != expect:
            raise error(message, response=response, document_id=document_id)
        return response

    # -------------------------------------------------------------------------
    # Upload and Polling
    # -------------------------------------------------------------------------

    async def upload(  # noqa: PLR0913
        self,
        document: Path | str | bytes,
        *,
        text: bool = False,
        filename: str | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_progress: ProgressCallback | None = None,
        user_identifier: str | None = None,
    ) -> DocumentHandle:
        """Upload a document and wait until its processing has ended.

        Args:
            document: Path to a file, raw bytes, or (with ``text=True``) the
                text content to upload.
            text: Upload ``document`` as UTF-8 text.
            filename: File name sent with the upload.
            interval: Seconds between status polls.
            on_progress: Called with the handle after each poll that did not
                end processing; may be a coroutine function.
            user_identifier: End user to act for (gateway auth).

        Returns:
            The processed document with ``duration`` set.

        Raises:
            UploadError: If the upload does not return 201.
            ProcessingError: If the upload or the processing times out.
            DocumentError: If a status poll fails.
        """
        payload, name, content_type = self._upload_payload(
            document, text=text, filename=filename
        )
        log = self._logger.bind(filename=name)
        log.info("document_upload_started", size=len(payload))

        headers = httpx.Headers(self.version_header())
        headers.update(self.user_identifier_header(user_identifier))

        started = time.perf_counter()
        try:
            async with asyncio.timeout(self.upload_timeout):
                response = await self._send(
                    "POST",
                    self.resolve_url("/documents"),
                    headers=headers,
                    files={"file": (name, payload, content_type)},
                    timeout=self.upload_timeout,
                )
        except TimeoutError as exc:
            msg = f"Document upload timed out after {self.upload_timeout}s"
            raise ProcessingError(msg) from exc
        except RequestError as exc:
            msg = f"Document upload failed: {exc.message}"
            raise UploadError(msg) from exc
        upload_time = time.perf_counter() - started

        if response.status_code != 201:  # noqa: PLR2004
            msg = "Document upload failed"
            raise UploadError(msg, response=response)

        location = response.headers.get("Location")
        if not location:
            msg = "Document upload response has no Location header"
            raise UploadError(msg, response=response)

        doc = DocumentHandle.from_location(location)
        log = log.bind(document_id=doc.id)
        log.info("document_uploaded", upload_seconds=round(upload_time, 3))

        started = time.perf_counter()
        try:
            async with asyncio.timeout(self.processing_timeout):
                await self.poll(
                    doc,
                    interval=interval,
                    on_progress=on_progress,
                    user_identifier=user_identifier,
                )
        except TimeoutError as exc:
            msg = f"Document processing timed out after {self.processing_timeout}s"
            raise ProcessingError(msg, document_id=doc.id) from exc
        except ProcessingError as exc:
            if exc.document_id is not None:
                raise
            raise ProcessingError(exc.message, document_id=doc.id) from exc

        doc.duration = Duration(
            upload=upload_time,
            processing=time.perf_counter() - started,
        )
        log.info(
            "document_processed",
            progress=doc.progress,
            total_seconds=round(doc.duration.total, 3),
        )
        return doc

    @staticmethod
    def _upload_payload(
        document: Path | str | bytes,
        *,
        text: bool,
        filename: str | None,
    ) -> tuple[bytes, str, str]:
        """Return body bytes, file name and content type for an upload."""
        if text:
            if not isinstance(document, str):
                msg = "Text uploads require a str document"
                raise TypeError(msg)
            return (
                document.encode("utf-8"),
                filename or "document.txt",
                "text/plain; charset=utf-8",
            )
        if isinstance(document, bytes):
            return document, filename or "document", "application/octet-stream"
        path = Path(document)
        return path.read_bytes(), filename or path.name, "application/octet-stream"

    async def poll(
        self,
        document: DocumentHandle,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_progress: ProgressCallback | None = None,
        user_identifier: str | None = None,
    ) -> DocumentHandle:
        """Fetch ``document`` until its processing has ended.

        The callback is invoked after every fetch that leaves the document
        unfinished, not after the final one. Unknown or unreadable progress
        values count as unfinished.

        Args:
            document: The handle to update.
            interval: Seconds between fetches.
            on_progress: Called with the handle after each unfinished poll.
            user_identifier: End user to act for (gateway auth).

        Returns:
            The same handle, now COMPLETED or ERROR.

        Raises:
            DocumentError: If a fetch does not return 200.
        """
        while True:
            await self.fetch(document, user_identifier=user_identifier)
            if document.is_complete:
                return document
            if on_progress is not None:
                result = on_progress(document)
                if inspect.isawaitable(result):
                    await result
            await asyncio.sleep(interval)

    # -------------------------------------------------------------------------
    # Document Operations
    # -------------------------------------------------------------------------

    async def fetch(
        self,
        document: DocumentHandle,
        *,
        user_identifier: str | None = None,
    ) -> DocumentHandle:
        """Update ``document`` in place with the server's current state.

        Raises:
            DocumentError: If the fetch does not return 200.
        """
        response = await self._call(
            "GET",
            document.location,
            expect=200,
            error=DocumentError,
            message="Failed to fetch document data",
            document_id=document.id,
            user_identifier=user_identifier,
        )
        data = response.parsed
        previous = document.progress
        try:
            if not isinstance(data, Mapping):
                msg = f"expected an object, got {type(data).__name__}"
                raise TypeError(msg)
            document.apply(data)
        except (ValidationError, TypeError) as exc:
            self._logger.warning(
                "document_payload_unreadable",
                document_id=document.id,
                content_type=response.headers.get("Content-Type"),
                error=str(exc),
            )
            return document

        if document.progress != previous:
            self._logger.debug(
                "document_progress",
                document_id=document.id,
                previous=previous,
                progress=document.progress,
            )
        return document

    async def get(
        self,
        document_id: str,
        *,
        user_identifier: str | None = None,
    ) -> DocumentHandle:
        """Get a document by ID.

        Raises:
            DocumentError: If the document cannot be fetched.
        """
        handle = DocumentHandle.from_location(
            self.resolve_url(f"/documents/{document_id}")
        )
        return await self.fetch(handle, user_identifier=user_identifier)

    async def delete(
        self,
        document_id: str,
        *,
        user_identifier: str | None = None,
    ) -> None:
        """Delete a document.

        Raises:
            DocumentError: If the deletion does not return 204.
        """
        await self._call(
            "DELETE",
            f"/documents/{document_id}",
            expect=204,
            error=DocumentError,
            message=f"Deletion of document {document_id} failed",
            document_id=document_id,
            user_identifier=user_identifier,
        )
        self._logger.info("document_deleted", document_id=document_id)

    async def list(
        self,
        *,
        limit: int = 20,
        offset: int = 0,
        user_identifier: str | None = None,
    ) -> DocumentSet:
        """List documents.

        Args:
            limit: Maximum number of documents to return.
            offset: Start offset.
            user_identifier: End user to act for (gateway auth).

        Returns:
            The documents and the total count.

        Raises:
            DocumentError: If the listing does not return 200.
        """
        response = await self._call(
            "GET",
            "/documents",
            expect=200,
            error=DocumentError,
            message="Failed to get list of documents",
            params={"limit": int(limit), "next": int(offset)},
            user_identifier=user_identifier,
        )
        return self._document_set(response, DocumentError)

    async def search(  # noqa: PLR0913
        self,
        query: str | list[str],
        *,
        doc_type: str = "",
        limit: int = 20,
        offset: int = 0,
        user_identifier: str | None = None,
    ) -> DocumentSet:
        """Full-text search for documents.

        Args:
            query: Search term(s); a list is joined with spaces.
            doc_type: Only include documents of this document type.
            limit: Results per page (1-250).
            offset: Start offset.
            user_identifier: End user to act for (gateway auth).

        Returns:
            The matching documents and the total count.

        Raises:
            ValueError: If ``limit`` is out of range.
            SearchError: If the search does not return 200.
        """
        if not 1 <= limit <= 250:  # noqa: PLR2004
            msg = f"limit must be between 1 and 250, got {limit}"
            raise ValueError(msg)
        if not isinstance(query, str):
            query = " ".join(query)

        response = await self._call(
            "GET",
            "/search",
            expect=200,
            error=SearchError,
            message="Search query failed",
            params={
                "q": query,
                "type": doc_type,
                "limit": int(limit),
                "next": int(offset),
            },
            user_identifier=user_identifier,
        )
        return self._document_set(response, SearchError)

    @staticmethod
    def _document_set(response: ApiResponse, error: type[ApiError]) -> DocumentSet:
        msg = "Unexpected document list response"
        if not isinstance(response.parsed, Mapping):
            raise error(msg, response=response)
        try:
            return DocumentSet.from_payload(response.parsed)
        except (ValueError, TypeError) as exc:
            raise error(msg, response=response) from exc

    async def processed(
        self,
        document: DocumentHandle,
        *,
        user_identifier: str | None = None,
    ) -> bytes:
        """Download the processed document (PDF, image, ...).

        Raises:
            DocumentError: If the download does not return 200.
        """
        response = await self._call(
            "GET",
            self._link(document, "processed"),
            expect=200,
            error=DocumentError,
            message="Failed to fetch processed document",
            document_id=document.id,
            headers={"Accept": "application/octet-stream"},
            user_identifier=user_identifier,
        )
        return response.content

    async def extractions(
        self,
        document: DocumentHandle,
        *,
        refresh: bool = False,
        incubator: bool = False,
        user_identifier: str | None = None,
    ) -> Extractions:
        """Return the extractions of a document.

        The result is cached on the handle; pass ``refresh=True`` to fetch
        again. Requesting a different ``incubator`` flag also refetches.

        Raises:
            DocumentError: If the extractions cannot be fetched.
        """
        cached = document.cached_extractions
        if cached is not None and not refresh and cached.incubator == incubator:
            return cached

        extractions = Extractions(
            self,
            self._link(document, "extractions"),
            incubator=incubator,
            user_identifier=user_identifier,
        )
        await extractions.update()
        document.cached_extractions = extractions
        return extractions

    def layout(
        self,
        document: DocumentHandle,
        *,
        user_identifier: str | None = None,
    ) -> Layout:
        """Return the layout resource of a document (fetched on access)."""
        if document.cached_layout is None:
            document.cached_layout = Layout(
                self,
                self._link(document, "layout"),
                user_identifier=user_identifier,
            )
        return document.cached_layout

    async def report_error(
        self,
        document: DocumentHandle,
        summary: str | None = None,
        description: str | None = None,
        *,
        user_identifier: str | None = None,
    ) -> str | None:
        """Report a processing error on a document.

        Returns:
            The error ID assigned by the API.

        Raises:
            DocumentError: If the report does not return 200.
        """
        params = {
            key: value
            for key, value in {"summary": summary, "description": description}.items()
            if value is not None
        }
        response = await self._call(
            "POST",
            f"{document.links.document or document.location}/errorreport",
            expect=200,
            error=DocumentError,
            message=f"Failed to submit error report for document {document.id}",
            document_id=document.id,
            params=params,
            user_identifier=user_identifier,
        )
        data = response.parsed
        return data.get("errorId") if isinstance(data, Mapping) else None

    @staticmethod
    def _link(document: DocumentHandle, name: str) -> str:
        url = getattr(document.links, name)
        if not url:
            msg = f"Document has no {name} link"
            raise DocumentError(msg, document_id=document.id)
        return url
