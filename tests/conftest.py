"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from gini_api.api import GiniClient
from gini_api.oauth import Token


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from pathlib import Path


API_URL = "https://api.gini.net"
OAUTH_URL = "https://user.gini.net"
CLIENT_ID = "test-client"
CLIENT_SECRET = "test-secret"  # noqa: S105
DOCUMENT_ID = "626626a0-749f-11e2-bfd6-000000000000"
DOCUMENT_URL = f"{API_URL}/documents/{DOCUMENT_ID}"


@pytest.fixture
async def client() -> AsyncGenerator[GiniClient, None]:
    """A client holding a non-expiring bearer token (no login traffic)."""
    async with GiniClient(
        CLIENT_ID,
        CLIENT_SECRET,
        upload_timeout=5,
        processing_timeout=5,
    ) as c:
        c.token = Token(access_value="access-token")
        yield c


@pytest.fixture
def document_json() -> Callable[..., dict[str, Any]]:
    """Factory for document representations."""

    def make(progress: str = "COMPLETED", **extra: Any) -> dict[str, Any]:
        return {
            "id": DOCUMENT_ID,
            "name": "invoice.pdf",
            "progress": progress,
            "origin": "UPLOAD",
            "sourceClassification": "NATIVE",
            "pageCount": 1,
            "_links": {
                "document": DOCUMENT_URL,
                "extractions": f"{DOCUMENT_URL}/extractions",
                "layout": f"{DOCUMENT_URL}/layout",
                "processed": f"{DOCUMENT_URL}/processed",
            },
            "pages": [
                {
                    "pageNumber": 1,
                    "images": {
                        "750x900": f"{DOCUMENT_URL}/pages/1/750x900",
                        "1280x1810": f"{DOCUMENT_URL}/pages/1/1280x1810",
                    },
                }
            ],
            **extra,
        }

    return make


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """A small file to upload."""
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4\n%test document\n%%EOF\n")
    return path
