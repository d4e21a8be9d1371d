"""
Data Ingestion Module
"""
from .orders import (
    OrderIngestor,
    OrderPayload,
    WebhookOutcome,
    WebhookPayloadError,
    WebhookSignatureError,
)

__all__ = [
    "OrderIngestor",
    "OrderPayload",
    "WebhookOutcome",
    "WebhookPayloadError",
    "WebhookSignatureError",
]
