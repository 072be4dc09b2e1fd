from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from billing.modules.documents.models import DocumentKind, DocumentStatus
from billing.modules.invoices.models import Currency, PaymentTerms, InvoiceStatus
from billing.modules.invoices.schemas import InvoiceLineItemCreate, InvoiceLineItemOut, InvoiceOut, _ensure_unique_products


class DocumentCreate(BaseModel):
    kind: DocumentKind = DocumentKind.QUOTE
    client_id: Optional[UUID] = None
    issue_date: date = Field(default_factory=date.today)
    expiry_date: Optional[date] = None
    currency: Optional[Currency] = None
    payment_terms: PaymentTerms = PaymentTerms.CASH
    credit_days: int = Field(0, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, lt=1)
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[InvoiceLineItemCreate] = Field(..., min_length=1)

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        return _ensure_unique_products(v)


class DocumentUpdate(BaseModel):
    client_id: Optional[UUID] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    currency: Optional[Currency] = None
    payment_terms: Optional[PaymentTerms] = None
    credit_days: Optional[int] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, lt=1)
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: Optional[List[InvoiceLineItemCreate]] = None

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        return _ensure_unique_products(v)


class DocumentStatusUpdate(BaseModel):
    status: DocumentStatus


class DocumentConvert(BaseModel):
    """Datos de la factura resultante; lo demás se copia del documento."""
    status: InvoiceStatus = InvoiceStatus.DRAFT
    issue_date: Optional[date] = None
    payment_terms: Optional[PaymentTerms] = None
    credit_days: Optional[int] = Field(None, ge=0)


class DocumentOut(BaseModel):
    id: UUID
    tenant_id: UUID
    client_id: Optional[UUID]
    number: str
    kind: DocumentKind
    status: DocumentStatus
    issue_date: date
    expiry_date: Optional[date]
    currency: Currency
    payment_terms: PaymentTerms
    credit_days: int
    notes: Optional[str]
    terms: Optional[str]
    tax_rate: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    converted_invoice_id: Optional[UUID]
    items: List[InvoiceLineItemOut] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DocumentConversionOut(BaseModel):
    document: DocumentOut
    invoice: InvoiceOut
