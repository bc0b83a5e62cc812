"""Gini API client, document models and content negotiation."""

from __future__ import annotations

from gini_api.api.client import GiniClient, ProgressCallback
from gini_api.api.documents import Extractions, Layout
from gini_api.api.models import (
    DocumentHandle,
    DocumentLinks,
    DocumentSet,
    DocumentState,
    Duration,
    Extraction,
    ExtractionFeedback,
)
from gini_api.api.negotiation import ApiResponse, ResponseParsers, version_media_type


__all__ = [
    "ApiResponse",
    "DocumentHandle",
    "DocumentLinks",
    "DocumentSet",
    "DocumentState",
    "Duration",
    "Extraction",
    "ExtractionFeedback",
    "Extractions",
    "GiniClient",
    "Layout",
    "ProgressCallback",
    "ResponseParsers",
    "version_media_type",
]
