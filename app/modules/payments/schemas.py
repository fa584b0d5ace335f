from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, Dict, Any
from uuid import UUID
from datetime import datetime

from app.modules.payments.models import PaymentRequestStatus


class PaymentRequestCreate(BaseModel):
    invoice_id: UUID
    gateway_id: UUID
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    customer_email: str
    expires_in_hours: int = Field(72, gt=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PaymentGatewayOut(BaseModel):
    id: UUID
    name: str
    provider: str
    is_active: bool

    class Config:
        from_attributes = True


class PaymentRequestOut(BaseModel):
    id: UUID
    invoice_id: UUID
    gateway_id: UUID
    amount: Decimal
    currency: str
    customer_email: str
    expires_at: datetime
    status: PaymentRequestStatus

    class Config:
        from_attributes = True


class PaymentLinkOut(BaseModel):
    payment_request: PaymentRequestOut
    token: str
    channel: str
    payment_url: str
    email_sent: bool
    message: Optional[str] = None
