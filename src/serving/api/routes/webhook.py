"""
Order Webhook Endpoint

Receives signed order webhooks and stores new orders.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from src.config import get_settings
from src.database.connection import get_session_factory
from src.ingestion.orders import OrderIngestor, WebhookPayloadError, WebhookSignatureError
from src.serving.api.errors import error_response

router = APIRouter()
logger = structlog.get_logger(__name__)


def get_order_ingestor(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> OrderIngestor:
    """FastAPI dependency building an ingestor from current settings."""
    settings = get_settings()
    return OrderIngestor(
        session_factory,
        secrets=[s.get_secret_value() for s in settings.security.webhook_secrets],
        location_names=settings.analytics.location_names,
    )


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    x_shopify_topic: Optional[str] = Header(None),
    x_shopify_hmac_sha256: Optional[str] = Header(None),
    ingestor: OrderIngestor = Depends(get_order_ingestor),
):
    """
    Verify the HMAC signature, skip duplicates and store new orders.
    
    Returns 401 for a bad signature and 400 for an unreadable body.
    """
    body = await request.body()
    topic = x_shopify_topic or "unknown"
    client = request.headers.get("x-forwarded-for") or (request.client.host if request.client else "unknown")
    
    logger.info("Webhook received", topic=topic, client=client, bytes=len(body))
    
    try:
        outcome = await ingestor.handle(topic, body, x_shopify_hmac_sha256 or "")
    except WebhookSignatureError as e:
        logger.warning("Webhook signature rejected", topic=topic, client=client)
        return error_response(str(e), 401)
    except WebhookPayloadError as e:
        logger.warning("Webhook payload rejected", topic=topic, reason=str(e))
        return error_response(str(e), 400)
    
    logger.info("Webhook handled", topic=topic, order_id=outcome.order_id, status=outcome.status.value)
    
    content = {"message": outcome.message}
    if outcome.order_id is not None and topic.startswith("orders/"):
        content["orderId"] = outcome.order_id
        content["timestamp"] = datetime.now(timezone.utc).isoformat()
    return JSONResponse(status_code=200, content=content)
