from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Tuple, Union
from uuid import UUID
import logging

from billing.common.exceptions import ConflictError, NotFoundError, InvalidTransitionError
from billing.common.validators import parse_tenant_id
from billing.core.config import settings
from billing.database.unit_of_work import UnitOfWork
from billing.modules.documents.models import Document, DocumentLineItem, DocumentStatus
from billing.modules.documents.schemas import DocumentCreate, DocumentUpdate, DocumentConvert
from billing.modules.invoices.models import Invoice, Currency
from billing.modules.invoices.schemas import InvoiceCreate, InvoiceLineItemCreate
from billing.modules.invoices.service import InvoiceService
from billing.modules.notifications.notifier import LowStockNotifier
from billing.modules.numbering.service import SequenceGenerator
from billing.modules.products.models import Product
from billing.modules.taxes.calculator import TaxCalculator

logger = logging.getLogger(__name__)

D = DocumentStatus

DOCUMENT_TRANSITIONS: Dict[DocumentStatus, FrozenSet[DocumentStatus]] = {
    D.DRAFT: frozenset({D.SENT, D.APPROVED, D.REJECTED}),
    D.SENT: frozenset({D.APPROVED, D.REJECTED, D.EXPIRED}),
    D.APPROVED: frozenset({D.CONVERTED, D.EXPIRED}),
    D.REJECTED: frozenset(),
    D.EXPIRED: frozenset(),
    D.CONVERTED: frozenset(),
}


class DocumentService:
    """
    Cotizaciones, proformas y notas de entrega.

    No tocan inventario. La conversión a factura reutiliza el gestor de
    facturas dentro de la misma unidad de trabajo, así que número, stock y
    estado del documento se confirman juntos.
    """

    def __init__(self, db: AsyncSession, notifier: Optional[LowStockNotifier] = None):
        self.db = db
        self.sequences = SequenceGenerator(db)
        self.invoices = InvoiceService(db, notifier)

    async def create_document(self, tenant_id: Union[UUID, str], document_data: DocumentCreate) -> Document:
        tenant = parse_tenant_id(tenant_id)
        calculator = TaxCalculator(document_data.tax_rate)

        async with UnitOfWork(self.db) as uow:
            catalog = await self._load_catalog(uow, tenant, [item.product_id for item in document_data.items])
            number = await self.sequences.next_number(uow, tenant, document_data.kind.value)

            document = Document(
                tenant_id=tenant,
                client_id=document_data.client_id,
                number=number,
                kind=document_data.kind,
                status=DocumentStatus.DRAFT,
                issue_date=document_data.issue_date,
                expiry_date=document_data.expiry_date,
                currency=document_data.currency or Currency(settings.DEFAULT_CURRENCY),
                payment_terms=document_data.payment_terms,
                credit_days=document_data.credit_days,
                notes=document_data.notes,
                terms=document_data.terms,
                tax_rate=calculator.tax_rate,
            )
            document.items = self._build_line_items(document_data.items, catalog)
            self._apply_totals(document, calculator)

            uow.session.add(document)
            await uow.flush()

        logger.info(f"Documento {document.number} ({document.kind.value}) creado para empresa {tenant}")
        return document

    async def get_document(self, tenant_id: Union[UUID, str], document_id: UUID) -> Document:
        tenant = parse_tenant_id(tenant_id)
        document = (await self.db.execute(
            select(Document).where(Document.id == document_id, Document.tenant_id == tenant)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if document is None:
            raise NotFoundError("Documento", document_id)
        return document

    async def update_document(
        self,
        tenant_id: Union[UUID, str],
        document_id: UUID,
        document_data: DocumentUpdate
    ) -> Document:
        tenant = parse_tenant_id(tenant_id)

        async with UnitOfWork(self.db) as uow:
            document = await self._get_for_update(uow, tenant, document_id)
            if document.status == DocumentStatus.CONVERTED:
                raise ConflictError(
                    f"El documento {document.number} ya fue convertido en factura",
                    document_id=document.id
                )

            changes = document_data.model_dump(exclude_unset=True, exclude={"items", "tax_rate"})
            for field, value in changes.items():
                if value is None and field in ("issue_date", "currency", "payment_terms", "credit_days"):
                    continue
                setattr(document, field, value)

            tax_rate = document_data.tax_rate if document_data.tax_rate is not None else document.tax_rate
            calculator = TaxCalculator(tax_rate)
            document.tax_rate = calculator.tax_rate

            if document_data.items is not None:
                catalog = await self._load_catalog(uow, tenant, [item.product_id for item in document_data.items])
                document.items = self._build_line_items(document_data.items, catalog)

            self._apply_totals(document, calculator)
            await uow.flush()

        logger.info(f"Documento {document.number} actualizado (empresa {tenant})")
        return document

    async def change_status(
        self,
        tenant_id: Union[UUID, str],
        document_id: UUID,
        new_status: DocumentStatus
    ) -> Document:
        """Cambiar estado. `converted` solo se alcanza con convert_to_invoice."""
        tenant = parse_tenant_id(tenant_id)
        target = DocumentStatus(getattr(new_status, "value", new_status))

        async with UnitOfWork(self.db) as uow:
            document = await self._get_for_update(uow, tenant, document_id)
            if document.status == target:
                return document
            if target == DocumentStatus.CONVERTED:
                raise InvalidTransitionError(
                    document.status.value, target.value,
                    "Use la conversión a factura para marcar el documento como convertido"
                )
            self._check_transition(document, target)

            previous = document.status
            document.status = target
            await uow.flush()

        logger.info(f"Documento {document.number}: {previous.value} -> {target.value}")
        return document

    async def convert_to_invoice(
        self,
        tenant_id: Union[UUID, str],
        document_id: UUID,
        conversion: Optional[DocumentConvert] = None
    ) -> Tuple[Document, Invoice]:
        """
        Generar la factura del documento aprobado.
        Convertir dos veces es un conflicto.
        """
        tenant = parse_tenant_id(tenant_id)
        conversion = conversion or DocumentConvert()

        async with UnitOfWork(self.db) as uow:
            document = await self._get_for_update(uow, tenant, document_id)
            if document.status == DocumentStatus.CONVERTED:
                raise ConflictError(
                    f"El documento {document.number} ya fue convertido en factura",
                    document_id=document.id,
                    invoice_id=document.converted_invoice_id
                )
            self._check_transition(document, DocumentStatus.CONVERTED)

            invoice_data = InvoiceCreate(
                client_id=document.client_id,
                status=conversion.status,
                issue_date=conversion.issue_date or document.issue_date,
                currency=document.currency,
                payment_terms=conversion.payment_terms or document.payment_terms,
                credit_days=conversion.credit_days if conversion.credit_days is not None else document.credit_days,
                tax_rate=document.tax_rate,
                notes=document.notes,
                terms=document.terms,
                items=[
                    InvoiceLineItemCreate(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        tax_exempt=item.tax_exempt
                    )
                    for item in document.items
                ]
            )
            invoice, result = await self.invoices.create_in(uow, tenant, invoice_data)
            self.invoices.schedule_low_stock(uow, tenant, result)

            document.status = DocumentStatus.CONVERTED
            document.converted_invoice_id = invoice.id
            await uow.flush()

        logger.info(f"Documento {document.number} convertido en factura {invoice.number} (empresa {tenant})")
        return document, invoice

    def _check_transition(self, document: Document, target: DocumentStatus):
        if target not in DOCUMENT_TRANSITIONS[document.status]:
            raise InvalidTransitionError(document.status.value, target.value)

    async def _get_for_update(self, uow: UnitOfWork, tenant: UUID, document_id: UUID) -> Document:
        document = (await uow.session.execute(
            select(Document)
            .where(Document.id == document_id, Document.tenant_id == tenant)
            .with_for_update()
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if document is None:
            raise NotFoundError("Documento", document_id)
        return document

    async def _load_catalog(self, uow: UnitOfWork, tenant: UUID, product_ids: List[UUID]) -> Dict[UUID, Product]:
        rows = await uow.session.execute(
            select(Product).where(Product.tenant_id == tenant, Product.id.in_(product_ids))
        )
        catalog = {product.id: product for product in rows.scalars().all()}
        missing = [pid for pid in product_ids if pid not in catalog]
        if missing:
            raise NotFoundError("Producto", missing[0])
        return catalog

    def _build_line_items(self, items: List[InvoiceLineItemCreate], catalog: Dict[UUID, Product]) -> List[DocumentLineItem]:
        return [
            DocumentLineItem(
                product_id=item.product_id,
                position=position,
                code=catalog[item.product_id].code,
                name=catalog[item.product_id].name,
                quantity=item.quantity,
                unit_price=item.unit_price if item.unit_price is not None else Decimal(catalog[item.product_id].price),
                tax_exempt=item.tax_exempt,
            )
            for position, item in enumerate(items)
        ]

    def _apply_totals(self, document: Document, calculator: TaxCalculator):
        totals = calculator.calculate_totals(document.items)
        for line_item, line in zip(document.items, totals.lines):
            line_item.unit_price = line.unit_price
            line_item.line_subtotal = line.line_subtotal
            line_item.line_tax = line.line_tax
            line_item.line_total = line.line_total

        document.subtotal = totals.subtotal
        document.tax = totals.tax
        document.total = totals.total
