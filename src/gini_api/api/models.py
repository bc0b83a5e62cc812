"""Models for documents, their processing state and extractions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field


if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from gini_api.api.documents import Extractions, Layout


__all__ = [
    "DocumentHandle",
    "DocumentLinks",
    "DocumentSet",
    "DocumentState",
    "Duration",
    "Extraction",
    "ExtractionFeedback",
]


class DocumentState(StrEnum):
    """Processing state of a document.

    Attributes:
        PENDING: The document is still being processed (initial state).
        COMPLETED: Processing finished successfully.
        ERROR: Processing failed.
    """

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        """Return True for COMPLETED and ERROR."""
        return self is not DocumentState.PENDING


class GiniBaseModel(BaseModel):
    """Base model for API payloads; keeps fields the client does not know."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
    )


class DocumentLinks(GiniBaseModel):
    """Named resource URLs of a document (``_links``)."""

    document: str | None = None
    extractions: str | None = None
    layout: str | None = None
    processed: str | None = None


class Extraction(GiniBaseModel):
    """A single extraction (label -> value with entity and position)."""

    value: Any = None
    entity: str | None = None
    box: dict[str, Any] | None = None
    candidates: str | None = None


class ExtractionFeedback(GiniBaseModel):
    """Corrected value (and optionally its position) for an extraction label."""

    value: Any
    box: dict[str, Any] | None = Field(default=None)

    def to_body(self) -> dict[str, Any]:
        """Return the request body, omitting an unset box."""
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class Duration:
    """Elapsed seconds of an upload and the processing that followed it."""

    upload: float
    processing: float

    @property
    def total(self) -> float:
        """Upload plus processing time."""
        return self.upload + self.processing


@dataclass
class DocumentHandle:
    """Client-side mirror of a remote document.

    The handle is overwritten with the server's snapshot on every fetch
    (:meth:`apply`). Known fields are typed; everything else the server
    sends is kept in ``extras``.

    Attributes:
        location: URL of the document resource.
        id: Document ID.
        progress: Raw processing state as sent by the server.
        links: Named sub-resource URLs.
        pages: Page descriptions (page number and image URLs).
        extras: Remaining response fields.
        duration: Upload/processing time, set after ``GiniClient.upload``.
        cached_extractions: Extractions fetched through this handle.
        cached_layout: Layout resource opened through this handle.
    """

    KNOWN_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"id", "progress", "_links", "pages"}
    )

    location: str
    id: str | None = None
    progress: str | None = None
    links: DocumentLinks = field(default_factory=DocumentLinks)
    pages: list[dict[str, Any]] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)
    duration: Duration | None = None
    cached_extractions: Extractions | None = field(
        default=None, repr=False, compare=False
    )
    cached_layout: Layout | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_location(cls, location: str) -> DocumentHandle:
        """Create an unfetched handle; the ID is the last path segment."""
        path = urlsplit(location).path.rstrip("/")
        document_id = path.rsplit("/", 1)[-1] or None
        return cls(location=location, id=document_id)

    @classmethod
    def from_payload(
        cls,
        data: Mapping[str, Any],
        *,
        location: str | None = None,
    ) -> DocumentHandle:
        """Create a handle from a document representation.

        Args:
            data: Parsed document body (from a fetch, list or search).
            location: Document URL; defaults to ``_links.document``.

        Returns:
            The populated handle.
        """
        links = data.get("_links") or {}
        if isinstance(links, dict):
            location = location or links.get("document")
        handle = cls.from_location(location or "")
        handle.apply(data)
        return handle

    def apply(self, data: Mapping[str, Any]) -> None:
        """Overwrite the mirrored attributes with a server snapshot.

        The snapshot is validated before anything is assigned, so a
        malformed body leaves the handle untouched.

        Raises:
            pydantic.ValidationError: If ``_links`` is malformed.
            TypeError: If ``pages`` is not a list.
        """
        links = DocumentLinks.model_validate(data.get("_links") or {})
        pages = data.get("pages") or []
        if not isinstance(pages, list):
            msg = f"pages must be a list, got {type(pages).__name__}"
            raise TypeError(msg)

        if data.get("id") is not None:
            self.id = str(data["id"])
        self.progress = data.get("progress")
        self.links = links
        self.pages = list(pages)
        self.extras = {k: v for k, v in data.items() if k not in self.KNOWN_FIELDS}

    @property
    def state(self) -> DocumentState | None:
        """Recognized processing state, or None for unknown values."""
        try:
            return DocumentState(self.progress)
        except ValueError:
            return None

    @property
    def is_complete(self) -> bool:
        """Return True once processing has ended (COMPLETED or ERROR)."""
        state = self.state
        return state is not None and state.is_terminal

    @property
    def is_successful(self) -> bool:
        """Return True if processing completed successfully."""
        return self.state is DocumentState.COMPLETED

    @property
    def page_images(self) -> list[dict[str, str]]:
        """Image URLs per page, indexed from 0."""
        return [page.get("images", {}) for page in self.pages]


@dataclass
class DocumentSet:
    """A page of documents returned by a list or search query.

    Attributes:
        total: Total number of matching documents on the server.
        documents: Documents contained in this page.
        next: Offset of the following page, if the server sent one.
    """

    total: int
    documents: list[DocumentHandle] = field(default_factory=list)
    next: int | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> DocumentSet:
        """Build a set from a ``{totalCount, next, documents}`` body.

        Raises:
            ValueError: If a count or a listed document is malformed.
            TypeError: If a listed document has the wrong shape.
        """
        next_offset = data.get("next")
        return cls(
            total=int(data.get("totalCount", 0)),
            documents=[
                DocumentHandle.from_payload(doc) for doc in data.get("documents", [])
            ],
            next=int(next_offset) if next_offset is not None else None,
        )

    def __iter__(self) -> Iterator[DocumentHandle]:
        """Iterate over the documents."""
        return iter(self.documents)

    def __len__(self) -> int:
        """Return the number of documents in this page."""
        return len(self.documents)
