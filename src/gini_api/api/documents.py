"""Document sub-resources: extractions and layout."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from gini_api.api.models import Extraction, ExtractionFeedback
from gini_api.exceptions import DocumentError, RequestError


if TYPE_CHECKING:
    from gini_api.api.client import GiniClient


__all__ = ["Extractions", "Layout"]

_UNPROCESSABLE = 422


class Extractions:
    """Extractions of a document, keyed by label.

    Values are read with :meth:`get` (or ``extractions[label]``) and
    corrected with :meth:`set`, which submits the feedback to the API.

    Example:
        ```python
        extractions = await client.extractions(doc)
        amount = extractions.get("amountToPay")
        await extractions.set("amountToPay", ExtractionFeedback(value="12.00:EUR"))
        ```

    Attributes:
        location: URL of the extractions resource.
        incubator: Whether experimental extractions were requested.
        raw: The parsed response body of the last fetch.
        candidates: Candidate values per candidate group.
    """

    def __init__(
        self,
        client: GiniClient,
        location: str,
        *,
        incubator: bool = False,
        user_identifier: str | None = None,
    ) -> None:
        """Initialize an unfetched extractions resource.

        Args:
            client: Client used for API calls.
            location: URL of the extractions resource.
            incubator: Request the experimental extraction surface.
            user_identifier: End user to act for (gateway auth).
        """
        self.location = location
        self.incubator = incubator
        self.raw: dict[str, Any] = {}
        self.candidates: dict[str, list[dict[str, Any]]] = {}
        self._client = client
        self._user_identifier = user_identifier
        self._items: dict[str, Extraction] = {}

    async def update(self) -> None:
        """Fetch the extractions from the API.

        Raises:
            DocumentError: If the fetch does not return 200.
        """
        msg = f"Failed to fetch extractions from {self.location}"
        try:
            response = await self._client.request(
                "GET",
                self.location,
                version="incubator" if self.incubator else None,
                user_identifier=self._user_identifier,
            )
        except RequestError as exc:
            if exc.http_status is None:
                raise
            raise DocumentError(msg, response=exc.response) from exc
        if response.status != 200 or not isinstance(response.parsed, dict):  # noqa: PLR2004
            raise DocumentError(msg, response=response)

        self.raw = response.parsed
        self._items = {
            label: Extraction.model_validate(data)
            for label, data in (self.raw.get("extractions") or {}).items()
        }
        self.candidates = self.raw.get("candidates") or {}

    @property
    def labels(self) -> list[str]:
        """Names of all extracted labels."""
        return list(self._items)

    def __contains__(self, label: object) -> bool:
        """Return True if ``label`` was extracted."""
        return label in self._items

    def extraction(self, label: str) -> Extraction:
        """Return the full extraction record for ``label``.

        Raises:
            DocumentError: If the label is unknown.
        """
        if label not in self._items:
            msg = f"Invalid extraction key '{label}': Not found"
            raise DocumentError(msg)
        return self._items[label]

    def get(self, label: str) -> Any:  # noqa: ANN401
        """Return the extracted value for ``label``.

        Raises:
            DocumentError: If the label is unknown or has no value.
        """
        extraction = self.extraction(label)
        if "value" not in extraction.model_fields_set:
            msg = f"Extraction key '{label}' has no value defined"
            raise DocumentError(msg)
        return extraction.value

    def __getitem__(self, label: str) -> Any:  # noqa: ANN401
        """Return the extracted value for ``label``."""
        return self.get(label)

    async def set(self, label: str, feedback: ExtractionFeedback | Any) -> None:  # noqa: ANN401
        """Submit a corrected value for ``label`` and store it locally.

        Args:
            label: Extraction label; may be one the API did not extract.
            feedback: The correction, or a bare value.
        """
        if not isinstance(feedback, ExtractionFeedback):
            feedback = ExtractionFeedback(value=feedback)
        await self.submit_feedback(label, feedback)

        current = self._items.get(label)
        if current is None:
            self._items[label] = Extraction.model_validate(feedback.to_body())
        else:
            current.value = feedback.value
            if feedback.box is not None:
                current.box = feedback.box

    async def submit_feedback(self, label: str, feedback: ExtractionFeedback) -> None:
        """PUT feedback for ``label`` to the API.

        Raises:
            DocumentError: If the API rejects the feedback (422) or does not
                answer with 204.
            RequestError: For any other failed request.
        """
        try:
            response = await self._client.request(
                "PUT",
                f"{self.location}/{label}",
                headers={"Content-Type": self._client.version_media_type()},
                json=feedback.to_body(),
                user_identifier=self._user_identifier,
            )
        except RequestError as exc:
            if exc.http_status == _UNPROCESSABLE:
                msg = f"Failed to submit feedback for label {label}"
                raise DocumentError(msg, response=exc.response) from exc
            raise

        if response.status != 204:  # noqa: PLR2004
            msg = f"Failed to submit feedback for label {label}"
            raise DocumentError(msg, response=response)


class Layout:
    """Layout of a document, available as XML or JSON text.

    Each representation is fetched once and cached. A representation the
    server does not deliver (any status other than 200) reads as None.
    """

    def __init__(
        self,
        client: GiniClient,
        location: str,
        *,
        user_identifier: str | None = None,
    ) -> None:
        """Initialize the layout resource.

        Args:
            client: Client used for API calls.
            location: URL of the layout resource.
            user_identifier: End user to act for (gateway auth).
        """
        self.location = location
        self._client = client
        self._user_identifier = user_identifier
        self._cache: dict[str, str] = {}

    async def xml(self) -> str | None:
        """Return the layout as an XML string, or None if unavailable."""
        return await self._get("xml")

    async def json(self) -> str | None:
        """Return the layout as a JSON string, or None if unavailable."""
        return await self._get("json")

    async def _get(self, media_type: str) -> str | None:
        if media_type in self._cache:
            return self._cache[media_type]

        try:
            response = await self._client.request(
                "GET",
                self.location,
                media_type=media_type,
                user_identifier=self._user_identifier,
            )
        except RequestError as exc:
            if exc.http_status is None:
                raise
            return None
        if response.status != 200:  # noqa: PLR2004
            return None
        self._cache[media_type] = response.text
        return response.text
