"""
Order Webhook Ingestion

Verifies, de-duplicates and stores order webhooks. Each order and its line
items are written in a single transaction; every delivery is recorded in the
webhook log in a separate transaction so the audit trail survives a failed
insert.
"""

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.models import ShopifyOrder, ShopifyOrderItem, WebhookLog, WebhookStatus

logger = structlog.get_logger(__name__)


class WebhookSignatureError(Exception):
    """HMAC signature missing or not produced by any configured secret"""


class WebhookPayloadError(Exception):
    """Body is not valid JSON or not a usable order"""


# =============================================================================
# PAYLOAD MODELS
# =============================================================================

class LineItemPayload(BaseModel):
    """Order line item as delivered by the webhook"""
    model_config = ConfigDict(extra="ignore")
    
    id: Optional[int] = None
    name: Optional[str] = ""
    sku: Optional[str] = ""
    price: Decimal = Decimal("0")
    quantity: int = 0
    vendor: Optional[str] = ""
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    variant_title: Optional[str] = ""
    gift_card: bool = False
    taxable: bool = False
    
    @property
    def line_total(self) -> Decimal:
        return (self.price * self.quantity).quantize(Decimal("0.01"))


class CustomerPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    
    first_name: Optional[str] = ""
    last_name: Optional[str] = ""


class AddressPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    
    city: Optional[str] = ""
    province: Optional[str] = ""
    country: Optional[str] = ""


class FulfillmentPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")
    
    location_id: Optional[int] = None
    name: Optional[str] = None


class OrderPayload(BaseModel):
    """Order webhook body (only the fields the dashboard uses)"""
    model_config = ConfigDict(extra="ignore")
    
    id: int
    name: Optional[str] = ""
    order_number: Optional[int] = None
    email: Optional[str] = ""
    phone: Optional[str] = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    subtotal_price: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    currency: Optional[str] = "USD"
    financial_status: Optional[str] = ""
    fulfillment_status: Optional[str] = ""
    gateway: Optional[str] = ""
    test: bool = False
    location_id: Optional[int] = None
    user_id: Optional[int] = None
    customer: Optional[CustomerPayload] = None
    shipping_address: Optional[AddressPayload] = None
    fulfillments: List[FulfillmentPayload] = Field(default_factory=list)
    tags: Optional[str] = ""
    note_attributes: List[Any] = Field(default_factory=list)
    discount_codes: List[Any] = Field(default_factory=list)
    line_items: List[LineItemPayload] = Field(default_factory=list)
    
    @property
    def fulfillment_location_id(self) -> Optional[int]:
        return self.fulfillments[0].location_id if self.fulfillments else None


def _wall_clock(value: Optional[datetime]) -> Optional[datetime]:
    # Stored as the store's local wall-clock time so DATE() gives the local day
    if value is None:
        return None
    return value.replace(tzinfo=None)


# =============================================================================
# INGESTION
# =============================================================================

@dataclass
class WebhookOutcome:
    """What happened to one webhook delivery"""
    status: WebhookStatus
    message: str
    order_id: Optional[str] = None


class OrderIngestor:
    """
    Verify and store order webhooks.
    
    Example:
        ingestor = OrderIngestor(session_factory, secrets=["..."])
        outcome = await ingestor.handle(topic, raw_body, signature)
    """
    
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        secrets: Sequence[str],
        location_names: Optional[Dict[str, str]] = None,
    ):
        self.session_factory = session_factory
        self.secrets = [s for s in secrets if s]
        self.location_names = location_names or {}
    
    def verify_signature(self, body: bytes, signature: str) -> bool:
        """Check the base64 HMAC-SHA256 of ``body`` against every secret."""
        if not signature:
            return False
        for secret in self.secrets:
            digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
            expected = base64.b64encode(digest).decode("ascii")
            if hmac.compare_digest(expected, signature):
                return True
        return False
    
    async def log_event(
        self,
        topic: str,
        order_id: Optional[str],
        status: WebhookStatus,
        details: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Append to the webhook log; a logging failure never fails the delivery."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(WebhookLog(
                        webhook_topic=topic,
                        shopify_order_id=order_id,
                        processing_status=status.value,
                        details=details,
                        error_message=error_message,
                    ))
        except SQLAlchemyError as e:
            logger.error("Failed to write webhook log", topic=topic, order_id=order_id, error=str(e))
    
    async def order_exists(self, order_id: int) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(select(ShopifyOrder.id).where(ShopifyOrder.id == order_id))
            return result.first() is not None
    
    def resolve_location(self, payload: OrderPayload) -> Optional[str]:
        """Store name for the order's location id, if the id is mapped."""
        location_id = payload.location_id or payload.fulfillment_location_id
        if location_id is None:
            return None
        return self.location_names.get(str(location_id))
    
    def build_order(self, payload: OrderPayload) -> ShopifyOrder:
        """Map a payload onto an order row with its line items attached."""
        customer = payload.customer or CustomerPayload()
        shipping = payload.shipping_address or AddressPayload()
        
        order = ShopifyOrder(
            id=payload.id,
            name=payload.name or "",
            order_number=payload.order_number,
            email=payload.email or "",
            phone=payload.phone or "",
            created_at=_wall_clock(payload.created_at or datetime.now(timezone.utc)),
            updated_at=_wall_clock(payload.updated_at),
            processed_at=_wall_clock(payload.processed_at),
            cancelled_at=_wall_clock(payload.cancelled_at),
            closed_at=_wall_clock(payload.closed_at),
            subtotal=payload.subtotal_price,
            total_price=payload.total_price,
            total_tax=payload.total_tax,
            currency=payload.currency or "USD",
            financial_status=payload.financial_status or "",
            fulfillment_status=payload.fulfillment_status or "",
            gateway=payload.gateway or "",
            test=payload.test,
            location=self.resolve_location(payload),
            employee=str(payload.user_id) if payload.user_id is not None else None,
            fulfillment_location_id=payload.fulfillment_location_id,
            customer_first_name=customer.first_name or "",
            customer_last_name=customer.last_name or "",
            shipping_city=shipping.city or "",
            shipping_province=shipping.province or "",
            shipping_country=shipping.country or "",
            tags=payload.tags or "",
            note_attributes=payload.note_attributes,
            discount_codes=payload.discount_codes,
        )
        order.items = [
            ShopifyOrderItem(
                lineitem_id=item.id,
                lineitem_name=item.name or "",
                lineitem_sku=item.sku or "",
                lineitem_price=item.price,
                lineitem_quantity=item.quantity,
                lineitem_total=item.line_total,
                lineitem_vendor=item.vendor or "",
                product_id=item.product_id,
                variant_id=item.variant_id,
                variant_title=item.variant_title or "",
                gift_card=item.gift_card,
                taxable=item.taxable,
            )
            for item in payload.line_items
        ]
        return order
    
    async def store_order(self, payload: OrderPayload) -> None:
        """Insert the order and its line items in one transaction."""
        async with self.session_factory() as session:
            async with session.begin():
                session.add(self.build_order(payload))
        
        logger.info(
            "Order stored",
            order_id=payload.id,
            line_items=len(payload.line_items),
            financial_status=payload.financial_status,
        )
    
    async def handle(self, topic: str, body: bytes, signature: str) -> WebhookOutcome:
        """
        Process one webhook delivery end to end.
        
        Raises:
            WebhookSignatureError: signature did not verify
            WebhookPayloadError: body is not JSON or not a valid order
            SQLAlchemyError: the order insert failed (already rolled back)
        """
        if not self.verify_signature(body, signature):
            await self.log_event(topic, None, WebhookStatus.FAILED, error_message="HMAC verification failed")
            raise WebhookSignatureError("Invalid webhook signature")
        
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            await self.log_event(topic, None, WebhookStatus.FAILED, "JSON parse error", str(e))
            raise WebhookPayloadError("Invalid JSON payload") from e
        
        raw_id = data.get("id") if isinstance(data, dict) else None
        order_id = str(raw_id) if raw_id is not None else None
        name = data.get("name") if isinstance(data, dict) else None
        await self.log_event(topic, order_id, WebhookStatus.RECEIVED, f"Order #{name or 'Unknown'}")
        
        if not (topic.startswith("orders/") and order_id):
            await self.log_event(topic, order_id, WebhookStatus.PROCESSED, f"Webhook received: {topic}")
            return WebhookOutcome(WebhookStatus.PROCESSED, f"Webhook {topic} acknowledged", order_id)
        
        try:
            payload = OrderPayload.model_validate(data)
        except ValidationError as e:
            await self.log_event(topic, order_id, WebhookStatus.FAILED, "Payload validation error", str(e))
            raise WebhookPayloadError("Invalid order payload") from e
        
        if await self.order_exists(payload.id):
            await self.log_event(
                topic, order_id, WebhookStatus.DUPLICATE, f"Order {order_id} already processed"
            )
            return WebhookOutcome(WebhookStatus.DUPLICATE, "Order already processed", order_id)
        
        try:
            await self.store_order(payload)
        except SQLAlchemyError as e:
            await self.log_event(topic, order_id, WebhookStatus.FAILED, error_message=str(e))
            raise
        
        await self.log_event(
            topic, order_id, WebhookStatus.PROCESSED, f"Successfully processed order {order_id}"
        )
        return WebhookOutcome(WebhookStatus.PROCESSED, "Webhook processed successfully", order_id)
