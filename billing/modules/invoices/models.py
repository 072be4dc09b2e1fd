from billing.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, Numeric, Enum, Date, Text, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from billing.common.mixins import TenantMixin, TimestampMixin
import enum


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class InvoiceStatus(enum.Enum):
    DRAFT = "draft"          # Borrador
    PENDING = "pending"      # Emitida, pendiente de pago
    PAID = "paid"            # Pagada completamente
    PARTIAL = "partial"      # Pago parcial
    OVERDUE = "overdue"      # Vencida
    CANCELLED = "cancelled"  # Cancelada (terminal, revierte stock)
    VOID = "void"            # Anulada (terminal, revierte stock)


class Currency(enum.Enum):
    USD = "USD"
    VES = "VES"


class PaymentTerms(enum.Enum):
    CASH = "cash"      # Contado
    CREDIT = "credit"  # Crédito


class Invoice(Base, TenantMixin, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    client_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    # Invoice data
    number = Column(String(50), nullable=False)  # Inmutable una vez asignado
    status = Column(Enum(InvoiceStatus, values_callable=_enum_values, name="invoice_status"),
                    nullable=False, default=InvoiceStatus.DRAFT)
    # True cuando el stock de la factura ya fue devuelto (cancelación/anulación)
    stock_reversed = Column(Boolean, nullable=False, default=False)

    issue_date = Column(Date, nullable=False, default=date.today)
    currency = Column(Enum(Currency, values_callable=_enum_values, name="invoice_currency"),
                      nullable=False, default=Currency.USD)
    payment_terms = Column(Enum(PaymentTerms, values_callable=_enum_values, name="invoice_payment_terms"),
                           nullable=False, default=PaymentTerms.CASH)
    credit_days = Column(Integer, nullable=False, default=30)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    # Totals (calculated)
    tax_rate = Column(Numeric(5, 4), nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
        lazy="selectin"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_invoice_tenant_number"),
        CheckConstraint("credit_days >= 0", name="ck_invoice_credit_days"),
    )


class InvoiceLineItem(Base, TimestampMixin):
    __tablename__ = "invoice_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # Snapshot data (para preservar información si el producto cambia)
    code = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)

    # Line calculations
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)  # Precio copiado al momento de la venta
    tax_exempt = Column(Boolean, nullable=False, default=False)
    line_subtotal = Column(Numeric(15, 2), nullable=False)  # quantity * unit_price
    line_tax = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_line_item_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_line_item_unit_price"),
    )
