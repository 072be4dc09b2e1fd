from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from billing.modules.invoices.models import InvoiceStatus, Currency, PaymentTerms


# Invoice Line Item Schemas
class InvoiceLineItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0, description="Cantidad debe ser mayor a 0")
    unit_price: Optional[Decimal] = Field(
        None, ge=0, description="Precio unitario sin impuestos; por defecto el precio actual del producto"
    )
    tax_exempt: bool = False


def _ensure_unique_products(items: Optional[List[InvoiceLineItemCreate]]):
    if items is None:
        return items
    if not items:
        raise ValueError('Debe incluir al menos un item en la factura')
    seen = set()
    for item in items:
        if item.product_id in seen:
            raise ValueError(f'El producto {item.product_id} aparece en más de una línea; agrupe las cantidades')
        seen.add(item.product_id)
    return items


class InvoiceLineItemOut(BaseModel):
    id: UUID
    product_id: UUID
    code: str
    name: str
    quantity: int
    unit_price: Decimal
    tax_exempt: bool
    line_subtotal: Decimal
    line_tax: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


# Invoice Schemas
class InvoiceCreate(BaseModel):
    client_id: Optional[UUID] = None
    number: Optional[str] = Field(None, min_length=1, max_length=50, description="Número explícito; si se omite se asigna el siguiente de la secuencia")
    status: InvoiceStatus = InvoiceStatus.DRAFT
    issue_date: date = Field(default_factory=date.today)
    currency: Optional[Currency] = None
    payment_terms: PaymentTerms = PaymentTerms.CASH
    credit_days: int = Field(30, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, lt=1)
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[InvoiceLineItemCreate] = Field(..., min_length=1, description="Debe incluir al menos un item")

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        return _ensure_unique_products(v)


class InvoiceUpdate(BaseModel):
    client_id: Optional[UUID] = None
    issue_date: Optional[date] = None
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


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceOut(BaseModel):
    id: UUID
    tenant_id: UUID
    client_id: Optional[UUID]
    number: str
    status: InvoiceStatus
    stock_reversed: bool
    issue_date: date
    currency: Currency
    payment_terms: PaymentTerms
    credit_days: int
    notes: Optional[str]
    terms: Optional[str]
    tax_rate: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    items: List[InvoiceLineItemOut] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int


class InvoiceFilters(BaseModel):
    """Filtros para búsqueda de facturas"""
    status: Optional[InvoiceStatus] = None
    client_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = Field(None, description="Buscar por número o notas")
