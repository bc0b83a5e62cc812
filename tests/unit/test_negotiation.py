"""Unit tests for content negotiation and response parsing."""

from __future__ import annotations

import httpx
import pytest

from gini_api.api.negotiation import (
    ApiResponse,
    ResponseParsers,
    parse_json,
    parse_xml,
    version_media_type,
)


@pytest.fixture
def parsers() -> ResponseParsers:
    """Registry for the default product and versions."""
    return ResponseParsers.for_product("gini")


def make_response(body: str | bytes, content_type: str | None) -> httpx.Response:
    """Build a response with the given body and Content-Type."""
    headers = {"Content-Type": content_type} if content_type else {}
    return httpx.Response(200, content=body, headers=headers)


class TestVersionMediaType:
    """Tests for vendor media types."""

    @pytest.mark.parametrize(
        ("version", "type_", "expected"),
        [
            ("v1", "json", "application/vnd.gini.v1+json"),
            ("v1", "xml", "application/vnd.gini.v1+xml"),
            ("incubator", "json", "application/vnd.gini.incubator+json"),
        ],
    )
    def test_media_type(self, version: str, type_: str, expected: str) -> None:
        """Test media type composition."""
        assert version_media_type("gini", version, type_) == expected


class TestParseXml:
    """Tests for the XML body parser."""

    def test_leaf_elements(self) -> None:
        """Test leaf elements become strings under the root tag."""
        assert parse_xml("<error><message>Bad</message></error>") == {
            "error": {"message": "Bad"}
        }

    def test_repeated_elements_become_list(self) -> None:
        """Test repeated children are collected into a list."""
        result = parse_xml("<data><a>1</a><a>2</a><b>x</b></data>")

        assert result == {"data": {"a": ["1", "2"], "b": "x"}}

    def test_attributes_and_text(self) -> None:
        """Test attributes become keys and text is kept."""
        result = parse_xml('<page number="1">text<word>hi</word></page>')

        assert result == {
            "page": {"number": "1", "word": "hi", "__content__": "text"}
        }

    def test_json_parser(self) -> None:
        """Test the JSON parser."""
        assert parse_json('{"progress": "PENDING"}') == {"progress": "PENDING"}


class TestResponseParsers:
    """Tests for the parser registry."""

    @pytest.mark.parametrize(
        "content_type",
        [
            "application/json",
            "application/vnd.gini.v1+json",
            "application/vnd.gini.incubator+json",
            "application/vnd.gini.v1+json; charset=utf-8",
            "Application/VND.Gini.V1+JSON",
        ],
    )
    def test_json_types(self, parsers: ResponseParsers, content_type: str) -> None:
        """Test registered JSON media types resolve to the JSON parser."""
        assert parsers.lookup(content_type) is parse_json

    @pytest.mark.parametrize(
        "content_type",
        ["application/xml", "application/vnd.gini.v1+xml"],
    )
    def test_xml_types(self, parsers: ResponseParsers, content_type: str) -> None:
        """Test registered XML media types resolve to the XML parser."""
        assert parsers.lookup(content_type) is parse_xml

    def test_unknown_type(self, parsers: ResponseParsers) -> None:
        """Test unregistered media types have no parser."""
        assert parsers.lookup("application/pdf") is None
        assert parsers.lookup(None) is None
        assert "application/pdf" not in parsers
        assert "application/vnd.gini.v1+json" in parsers

    def test_register_custom(self, parsers: ResponseParsers) -> None:
        """Test registering an additional parser."""
        parsers.register("text/plain", str.upper)

        assert parsers.lookup("text/plain; charset=utf-8") is str.upper

    def test_other_product_versions(self) -> None:
        """Test registries for other products and versions."""
        parsers = ResponseParsers.for_product("acme", ("v2",))

        assert parsers.lookup("application/vnd.acme.v2+json") is parse_json
        assert parsers.lookup("application/vnd.gini.v1+json") is None


class TestApiResponse:
    """Tests for content-negotiated responses."""

    def test_parsed_json(self, parsers: ResponseParsers) -> None:
        """Test a vendor JSON body is decoded."""
        response = ApiResponse(
            make_response(b'{"id": "abc"}', "application/vnd.gini.v1+json"),
            parsers,
        )

        assert response.status == 200
        assert response.parsed == {"id": "abc"}

    def test_parsed_xml(self, parsers: ResponseParsers) -> None:
        """Test an XML body is decoded."""
        response = ApiResponse(
            make_response(b"<doc><id>abc</id></doc>", "application/vnd.gini.v1+xml"),
            parsers,
        )

        assert response.parsed == {"doc": {"id": "abc"}}

    def test_unregistered_type_is_not_parsed(self, parsers: ResponseParsers) -> None:
        """Test raw bodies of unknown types stay available but unparsed."""
        response = ApiResponse(make_response(b"%PDF-1.4", "application/pdf"), parsers)

        assert response.parsed is None
        assert response.content == b"%PDF-1.4"

    def test_missing_content_type(self, parsers: ResponseParsers) -> None:
        """Test a response without Content-Type is not parsed."""
        response = ApiResponse(make_response(b'{"a": 1}', None), parsers)

        assert response.parsed is None

    def test_malformed_body_returns_text(self, parsers: ResponseParsers) -> None:
        """Test an undecodable body falls back to the raw text."""
        json_response = ApiResponse(
            make_response(b"not json", "application/json"), parsers
        )
        xml_response = ApiResponse(
            make_response(b"<unclosed>", "application/xml"), parsers
        )

        assert json_response.parsed == "not json"
        assert xml_response.parsed == "<unclosed>"

    def test_repr(self, parsers: ResponseParsers) -> None:
        """Test the short representation."""
        response = ApiResponse(httpx.Response(204), parsers)

        assert repr(response) == "<ApiResponse [204]>"
