"""Content negotiation: versioned media types and response parsing.

The API versions its representations through vendor media types of the
form ``application/vnd.<product>.<version>+<type>``. Requests announce the
wanted representation in ``Accept``; responses are decoded by a parser
registered for their ``Content-Type``.
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from functools import cached_property
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx


__all__ = [
    "ApiResponse",
    "ResponseParsers",
    "parse_json",
    "parse_xml",
    "version_media_type",
]


type Parser = Callable[[str], Any]


def version_media_type(product: str, version: str, type_: str) -> str:
    """Return the vendor media type for a product, API version and format.

    Example:
        >>> version_media_type("gini", "v1", "json")
        'application/vnd.gini.v1+json'
    """
    return f"application/vnd.{product}.{version}+{type_}"


def parse_json(body: str) -> Any:  # noqa: ANN401
    """Decode a JSON body."""
    return json.loads(body)


def parse_xml(body: str) -> dict[str, Any]:
    """Decode an XML body into nested dicts, lists and strings.

    The root element becomes the single top-level key. Attributes and child
    elements become keys of the element's dict, repeated child elements are
    collected into a list, and leaf elements map to their text.

    Example:
        >>> parse_xml("<data><a>1</a><a>2</a><b>x</b></data>")
        {'data': {'a': ['1', '2'], 'b': 'x'}}
    """
    root = ET.fromstring(body)  # noqa: S314
    return {root.tag: _element_value(root)}


def _element_value(element: ET.Element) -> Any:  # noqa: ANN401
    children = list(element)
    if not children and not element.attrib:
        return element.text

    value: dict[str, Any] = dict(element.attrib)
    for child in children:
        child_value = _element_value(child)
        if child.tag not in value:
            value[child.tag] = child_value
        elif isinstance(value[child.tag], list):
            value[child.tag].append(child_value)
        else:
            value[child.tag] = [value[child.tag], child_value]

    text = (element.text or "").strip()
    if text:
        value["__content__"] = text
    return value


class ResponseParsers:
    """Registry mapping response media types to body parsers."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._parsers: dict[str, Parser] = {}

    @classmethod
    def for_product(
        cls,
        product: str,
        versions: tuple[str, ...] = ("v1", "incubator"),
    ) -> ResponseParsers:
        """Build a registry for the JSON and XML types of a product.

        Args:
            product: Product name used in vendor media types.
            versions: API versions to register parsers for.

        Returns:
            A registry with JSON and XML parsers registered.
        """
        parsers = cls()
        parsers.register("application/json", parse_json)
        parsers.register("application/xml", parse_xml)
        for version in versions:
            parsers.register(version_media_type(product, version, "json"), parse_json)
            parsers.register(version_media_type(product, version, "xml"), parse_xml)
        return parsers

    def register(self, media_type: str, parser: Parser) -> None:
        """Register ``parser`` for ``media_type``."""
        self._parsers[media_type.lower()] = parser

    def lookup(self, content_type: str | None) -> Parser | None:
        """Return the parser for a ``Content-Type`` header value, if any."""
        if not content_type:
            return None
        media_type = content_type.split(";", 1)[0].strip().lower()
        return self._parsers.get(media_type)

    def __contains__(self, media_type: object) -> bool:
        """Return True if a parser is registered for ``media_type``."""
        return isinstance(media_type, str) and media_type.lower() in self._parsers


class ApiResponse:
    """An API response with content-negotiated body parsing.

    Attributes:
        response: The underlying ``httpx.Response``.
    """

    def __init__(self, response: httpx.Response, parsers: ResponseParsers) -> None:
        """Wrap ``response``, decoding its body with ``parsers`` on demand."""
        self.response = response
        self._parsers = parsers

    @property
    def status(self) -> int:
        """HTTP status code."""
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        """Response headers."""
        return self.response.headers

    @property
    def content(self) -> bytes:
        """Raw response body."""
        return self.response.content

    @property
    def text(self) -> str:
        """Response body decoded as text."""
        return self.response.text

    @cached_property
    def parsed(self) -> Any:  # noqa: ANN401
        """Structured body decoded by the parser for the response's media type.

        Returns None when no parser is registered for the media type, and
        the raw text when the registered parser cannot decode the body.
        """
        parser = self._parsers.lookup(self.response.headers.get("Content-Type"))
        if parser is None:
            return None
        try:
            return parser(self.text)
        except (ValueError, ET.ParseError):
            return self.text

    def __repr__(self) -> str:
        """Return a short representation."""
        return f"<ApiResponse [{self.status}]>"
