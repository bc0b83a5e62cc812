"""Unit tests for document sub-resources."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator  # noqa: TC003

import httpx
import pytest
import respx  # noqa: TC002

from gini_api.api import Extractions, ExtractionFeedback, GiniClient, Layout
from gini_api.exceptions import DocumentError, RequestError
from gini_api.oauth import Token


DOCUMENT_URL = "https://api.gini.net/documents/626626a0-749f-11e2-bfd6-000000000000"
EXTRACTIONS_URL = f"{DOCUMENT_URL}/extractions"
LAYOUT_URL = f"{DOCUMENT_URL}/layout"

EXTRACTIONS_BODY = {
    "extractions": {
        "amountToPay": {
            "entity": "amount",
            "value": "24.99:EUR",
            "candidates": "amounts",
            "box": {"page": 1, "left": 10, "top": 20, "width": 30, "height": 5},
        },
        "docType": {"entity": "doctype"},
    },
    "candidates": {
        "amounts": [
            {"entity": "amount", "value": "24.99:EUR"},
            {"entity": "amount", "value": "5.00:EUR"},
        ]
    },
}


@pytest.fixture
async def client() -> AsyncGenerator[GiniClient, None]:
    """A logged-in client."""
    async with GiniClient("test-client", "test-secret") as c:
        c.token = Token(access_value="access-token")
        yield c


@pytest.fixture
async def extractions(
    client: GiniClient,
    respx_mock: respx.MockRouter,
) -> Extractions:
    """Extractions fetched from a mocked response."""
    respx_mock.get(EXTRACTIONS_URL).mock(
        return_value=httpx.Response(200, json=EXTRACTIONS_BODY)
    )
    result = Extractions(client, EXTRACTIONS_URL)
    await result.update()
    return result


# ---------------------------------------------------------------------------
# Extractions
# ---------------------------------------------------------------------------


class TestExtractions:
    """Tests for reading extractions."""

    def test_labels_and_values(self, extractions: Extractions) -> None:
        """Test labelled values are exposed."""
        assert extractions.labels == ["amountToPay", "docType"]
        assert "amountToPay" in extractions
        assert extractions.get("amountToPay") == "24.99:EUR"
        assert extractions["amountToPay"] == "24.99:EUR"

    def test_full_record(self, extractions: Extractions) -> None:
        """Test the complete record and candidates are kept."""
        record = extractions.extraction("amountToPay")

        assert record.entity == "amount"
        assert record.box is not None
        assert record.box["page"] == 1
        assert len(extractions.candidates["amounts"]) == 2
        assert extractions.raw == EXTRACTIONS_BODY

    def test_unknown_label(self, extractions: Extractions) -> None:
        """Test an unknown label raises DocumentError."""
        with pytest.raises(DocumentError, match="Invalid extraction key 'iban'"):
            extractions.get("iban")

    def test_label_without_value(self, extractions: Extractions) -> None:
        """Test a label without value raises DocumentError."""
        with pytest.raises(DocumentError, match="has no value defined"):
            extractions.get("docType")

    async def test_incubator_accept_header(
        self,
        client: GiniClient,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test incubator extractions negotiate the incubator version."""
        route = respx_mock.get(EXTRACTIONS_URL).mock(
            return_value=httpx.Response(200, json={"extractions": {}})
        )
        extractions = Extractions(client, EXTRACTIONS_URL, incubator=True)

        await extractions.update()

        assert route.calls.last.request.headers["Accept"] == (
            "application/vnd.gini.incubator+json"
        )
        assert extractions.labels == []

    async def test_fetch_failure(
        self,
        client: GiniClient,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test a failed fetch raises DocumentError with the status."""
        respx_mock.get(EXTRACTIONS_URL).mock(return_value=httpx.Response(404))

        with pytest.raises(DocumentError) as exc_info:
            await Extractions(client, EXTRACTIONS_URL).update()

        assert exc_info.value.http_status == 404

    async def test_fetch_connection_error(
        self,
        client: GiniClient,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test transport failures propagate as RequestError."""
        respx_mock.get(EXTRACTIONS_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(RequestError):
            await Extractions(client, EXTRACTIONS_URL).update()


class TestExtractionFeedback:
    """Tests for submitting corrected values."""

    async def test_set_existing_label(
        self,
        extractions: Extractions,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test feedback is PUT and the local value updated."""
        route = respx_mock.put(f"{EXTRACTIONS_URL}/amountToPay").mock(
            return_value=httpx.Response(204)
        )

        await extractions.set("amountToPay", ExtractionFeedback(value="30.00:EUR"))

        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/vnd.gini.v1+json"
        assert json.loads(request.content) == {"value": "30.00:EUR"}
        assert extractions.get("amountToPay") == "30.00:EUR"
        assert extractions.extraction("amountToPay").entity == "amount"

    async def test_set_new_label_with_box(
        self,
        extractions: Extractions,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test feedback for a label the API did not extract."""
        route = respx_mock.put(f"{EXTRACTIONS_URL}/iban").mock(
            return_value=httpx.Response(204)
        )
        box = {"page": 1, "left": 1, "top": 2, "width": 3, "height": 4}

        await extractions.set("iban", ExtractionFeedback(value="DE89", box=box))

        assert json.loads(route.calls.last.request.content) == {
            "value": "DE89",
            "box": box,
        }
        assert extractions.get("iban") == "DE89"
        assert extractions.extraction("iban").box == box

    async def test_set_bare_value(
        self,
        extractions: Extractions,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test a plain value is wrapped as feedback."""
        respx_mock.put(f"{EXTRACTIONS_URL}/docType").mock(
            return_value=httpx.Response(204)
        )

        await extractions.set("docType", "Invoice")

        assert extractions.get("docType") == "Invoice"

    async def test_rejected_feedback(
        self,
        extractions: Extractions,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test 422 raises DocumentError and keeps the old value."""
        respx_mock.put(f"{EXTRACTIONS_URL}/amountToPay").mock(
            return_value=httpx.Response(422, json={"message": "Invalid amount"})
        )

        with pytest.raises(DocumentError) as exc_info:
            await extractions.set("amountToPay", "nonsense")

        assert exc_info.value.server_message == "Invalid amount"
        assert extractions.get("amountToPay") == "24.99:EUR"

    async def test_unexpected_success_status(
        self,
        extractions: Extractions,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test a success status other than 204 raises DocumentError."""
        respx_mock.put(f"{EXTRACTIONS_URL}/amountToPay").mock(
            return_value=httpx.Response(200)
        )

        with pytest.raises(DocumentError, match="Failed to submit feedback"):
            await extractions.set("amountToPay", "1.00:EUR")

    async def test_server_error_is_request_error(
        self,
        extractions: Extractions,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test other HTTP failures propagate as RequestError."""
        respx_mock.put(f"{EXTRACTIONS_URL}/amountToPay").mock(
            return_value=httpx.Response(500)
        )

        with pytest.raises(RequestError) as exc_info:
            await extractions.set("amountToPay", "1.00:EUR")

        assert not isinstance(exc_info.value, DocumentError)
        assert exc_info.value.http_status == 500


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class TestLayout:
    """Tests for the layout resource."""

    async def test_xml_and_json(
        self,
        client: GiniClient,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test each representation is requested with its media type."""
        route = respx_mock.get(LAYOUT_URL).mock(
            side_effect=[
                httpx.Response(200, text="<document><page/></document>"),
                httpx.Response(200, text='{"pages": []}'),
            ]
        )
        layout = Layout(client, LAYOUT_URL)

        assert await layout.xml() == "<document><page/></document>"
        assert route.calls.last.request.headers["Accept"] == (
            "application/vnd.gini.v1+xml"
        )
        assert await layout.json() == '{"pages": []}'
        assert route.calls.last.request.headers["Accept"] == (
            "application/vnd.gini.v1+json"
        )

    async def test_cached(
        self,
        client: GiniClient,
        respx_mock: respx.MockRouter,
    ) -> None:
        """Test a representation is fetched once."""
        route = respx_mock.get(LAYOUT_URL).mock(
            return_value=httpx.Response(200, text="<document/>")
        )
        layout = Layout(client, LAYOUT_URL)

        await layout.xml()
        await layout.xml()

        assert route.call_count == 1

    @pytest.mark.parametrize("status", [204, 404, 500])
    async def test_unavailable(
        self,
        client: GiniClient,
        respx_mock: respx.MockRouter,
        status: int,
    ) -> None:
        """Test any status other than 200 reads as None."""
        route = respx_mock.get(LAYOUT_URL).mock(return_value=httpx.Response(status))
        layout = Layout(client, LAYOUT_URL)

        assert await layout.xml() is None
        assert await layout.xml() is None
        assert route.call_count == 2
