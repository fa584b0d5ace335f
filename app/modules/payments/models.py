from app.database.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Enum, Integer, JSON, Uuid
from sqlalchemy.orm import relationship
from app.common.mixins import IdentityMixin, TimestampMixin
import enum


class PaymentRequestStatus(enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class PaymentGateway(Base, IdentityMixin, TimestampMixin):
    __tablename__ = "payment_gateways"

    name = Column(String(100), nullable=False)
    provider = Column(String(50), nullable=False)  # razorpay, stripe, paypal...
    is_active = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=0)


class PaymentRequest(Base, IdentityMixin, TimestampMixin):
    __tablename__ = "payment_requests"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    gateway_id = Column(Uuid(as_uuid=True), ForeignKey("payment_gateways.id"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    customer_email = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(PaymentRequestStatus), nullable=False, default=PaymentRequestStatus.PENDING)
    # "metadata" is reserved on declarative classes
    request_metadata = Column("metadata", JSON, nullable=True)

    gateway = relationship("PaymentGateway")
    links = relationship("PaymentLink", back_populates="payment_request", cascade="all, delete-orphan")


class PaymentLink(Base, IdentityMixin, TimestampMixin):
    __tablename__ = "payment_links"

    payment_request_id = Column(Uuid(as_uuid=True), ForeignKey("payment_requests.id"), nullable=False, index=True)
    channel = Column(String(20), nullable=False, default="email")
    token = Column(String(64), nullable=False, unique=True, index=True)

    payment_request = relationship("PaymentRequest", back_populates="links")
