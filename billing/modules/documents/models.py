from billing.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, Numeric, Enum, Date, Text, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from billing.common.mixins import TenantMixin, TimestampMixin
from billing.modules.invoices.models import Currency, PaymentTerms
import enum


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class DocumentKind(enum.Enum):
    QUOTE = "quote"                  # Cotización
    PROFORMA = "proforma"            # Factura proforma
    DELIVERY_NOTE = "delivery_note"  # Nota de entrega


class DocumentStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"  # Terminal: ya generó su factura


class Document(Base, TenantMixin, TimestampMixin):
    __tablename__ = "documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    client_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    number = Column(String(50), nullable=False)
    kind = Column(Enum(DocumentKind, values_callable=_enum_values, name="document_kind"),
                  nullable=False, default=DocumentKind.QUOTE)
    status = Column(Enum(DocumentStatus, values_callable=_enum_values, name="document_status"),
                    nullable=False, default=DocumentStatus.DRAFT)

    issue_date = Column(Date, nullable=False, default=date.today)
    expiry_date = Column(Date, nullable=True)
    currency = Column(Enum(Currency, values_callable=_enum_values, name="document_currency"),
                      nullable=False, default=Currency.USD)
    payment_terms = Column(Enum(PaymentTerms, values_callable=_enum_values, name="document_payment_terms"),
                           nullable=False, default=PaymentTerms.CASH)
    credit_days = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    tax_rate = Column(Numeric(5, 4), nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    # Factura generada al convertir
    converted_invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    items = relationship(
        "DocumentLineItem",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLineItem.position",
        lazy="selectin"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_document_tenant_number"),
        CheckConstraint("credit_days >= 0", name="ck_document_credit_days"),
    )


class DocumentLineItem(Base, TimestampMixin):
    __tablename__ = "document_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    code = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    tax_exempt = Column(Boolean, nullable=False, default=False)
    line_subtotal = Column(Numeric(15, 2), nullable=False)
    line_tax = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False)

    document = relationship("Document", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_document_line_item_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_document_line_item_unit_price"),
    )
