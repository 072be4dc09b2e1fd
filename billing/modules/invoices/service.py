from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union
from uuid import UUID
import logging

from billing.common.exceptions import ConflictError, NotFoundError
from billing.common.validators import parse_tenant_id
from billing.core.config import settings
from billing.database.unit_of_work import UnitOfWork
from billing.modules.inventory.reconciler import StockReconciler
from billing.modules.inventory.schemas import ReconciliationResult
from billing.modules.invoices.models import Invoice, InvoiceLineItem, InvoiceStatus, Currency
from billing.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, InvoiceFilters, InvoiceLineItemCreate
from billing.modules.invoices.state_machine import (
    evaluate_transition, validate_initial_status, is_editable, coerce_status
)
from billing.modules.notifications.notifier import LowStockNotifier, low_stock_alerts
from billing.modules.numbering.service import SequenceGenerator
from billing.modules.products.models import Product
from billing.modules.taxes.calculator import TaxCalculator

logger = logging.getLogger(__name__)


class InvoiceService:
    """
    Gestor del ciclo de vida de facturas.

    Cada mutación corre en una sola UnitOfWork: asignación de número,
    reconciliación de stock y escritura de la factura se confirman juntas o
    no se confirma nada.
    """

    def __init__(self, db: AsyncSession, notifier: Optional[LowStockNotifier] = None):
        self.db = db
        self.notifier = notifier
        self.sequences = SequenceGenerator(db)
        self.reconciler = StockReconciler()

    # ------------------------------------------------------------------
    # Mutaciones
    # ------------------------------------------------------------------

    async def create_invoice(
        self,
        tenant_id: Union[UUID, str],
        invoice_data: InvoiceCreate,
        number: Optional[str] = None
    ) -> Invoice:
        """Crear factura: número, consumo de stock y persistencia en una sola transacción."""
        tenant = parse_tenant_id(tenant_id)

        async with UnitOfWork(self.db) as uow:
            invoice, result = await self.create_in(uow, tenant, invoice_data, number=number)
            self.schedule_low_stock(uow, tenant, result)

        logger.info(f"Factura {invoice.number} creada para empresa {tenant} - total {invoice.total} {invoice.currency.value}")
        return invoice

    async def create_in(
        self,
        uow: UnitOfWork,
        tenant: UUID,
        invoice_data: InvoiceCreate,
        number: Optional[str] = None
    ) -> Tuple[Invoice, ReconciliationResult]:
        """
        Crear la factura dentro de una unidad de trabajo existente.
        La usa también la conversión de documentos.
        """
        status = validate_initial_status(invoice_data.status)
        calculator = TaxCalculator(invoice_data.tax_rate)

        number = number or invoice_data.number
        if number:
            await self._ensure_number_available(uow, tenant, number)
        else:
            number = await self._next_free_number(uow, tenant)

        result = await self.reconciler.reconcile(uow, tenant, [], invoice_data.items)
        catalog = await self._load_catalog(uow, tenant, [item.product_id for item in invoice_data.items])

        invoice = Invoice(
            tenant_id=tenant,
            client_id=invoice_data.client_id,
            number=number,
            status=status,
            stock_reversed=False,
            issue_date=invoice_data.issue_date,
            currency=invoice_data.currency or Currency(settings.DEFAULT_CURRENCY),
            payment_terms=invoice_data.payment_terms,
            credit_days=invoice_data.credit_days,
            notes=invoice_data.notes,
            terms=invoice_data.terms,
            tax_rate=calculator.tax_rate,
        )
        invoice.items = self._build_line_items(invoice_data.items, catalog)
        self._apply_totals(invoice, calculator)

        uow.session.add(invoice)
        await uow.flush()
        return invoice, result

    async def update_invoice(
        self,
        tenant_id: Union[UUID, str],
        invoice_id: UUID,
        invoice_data: InvoiceUpdate
    ) -> Invoice:
        """
        Actualizar una factura no terminal. El número nunca cambia.
        Si llegan ítems se reconcilia (anteriores -> nuevos) y se reemplazan.
        """
        tenant = parse_tenant_id(tenant_id)

        async with UnitOfWork(self.db) as uow:
            invoice = await self._get_for_update(uow, tenant, invoice_id)
            if not is_editable(invoice.status):
                raise ConflictError(
                    f"La factura {invoice.number} está en estado '{invoice.status.value}' y no puede modificarse",
                    invoice_id=invoice.id,
                    status=invoice.status.value
                )

            changes = invoice_data.model_dump(exclude_unset=True, exclude={"items", "tax_rate"})
            for field, value in changes.items():
                if value is None and field in ("issue_date", "currency", "payment_terms", "credit_days"):
                    continue
                setattr(invoice, field, value)

            tax_rate = invoice_data.tax_rate if invoice_data.tax_rate is not None else invoice.tax_rate
            calculator = TaxCalculator(tax_rate)
            invoice.tax_rate = calculator.tax_rate

            result = ReconciliationResult()
            if invoice_data.items is not None:
                stored = self._stored_quantities(invoice)
                result = await self.reconciler.reconcile(uow, tenant, stored, invoice_data.items)
                catalog = await self._load_catalog(uow, tenant, [item.product_id for item in invoice_data.items])
                # delete-orphan elimina los ítems anteriores en el flush
                invoice.items = self._build_line_items(invoice_data.items, catalog)

            self._apply_totals(invoice, calculator)
            await uow.flush()
            self.schedule_low_stock(uow, tenant, result)

        logger.info(f"Factura {invoice.number} actualizada (empresa {tenant})")
        return invoice

    async def delete_invoice(self, tenant_id: Union[UUID, str], invoice_id: UUID) -> None:
        """Eliminar la factura devolviendo su stock, salvo que ya se haya devuelto."""
        tenant = parse_tenant_id(tenant_id)

        async with UnitOfWork(self.db) as uow:
            invoice = await self._get_for_update(uow, tenant, invoice_id)
            number = invoice.number

            if not invoice.stock_reversed:
                await self.reconciler.reconcile(uow, tenant, self._stored_quantities(invoice), [])

            await uow.session.delete(invoice)
            await uow.flush()

        logger.info(f"Factura {number} eliminada (empresa {tenant})")

    async def change_status(
        self,
        tenant_id: Union[UUID, str],
        invoice_id: UUID,
        new_status: Union[InvoiceStatus, str]
    ) -> Invoice:
        """
        Cambiar el estado según la tabla de transiciones.

        Entrar en cancelled/void devuelve el stock una sola vez. Repetir el
        estado actual no escribe nada.
        """
        tenant = parse_tenant_id(tenant_id)
        target = coerce_status(new_status)

        async with UnitOfWork(self.db) as uow:
            invoice = await self._get_for_update(uow, tenant, invoice_id)
            transition = evaluate_transition(invoice.status, target, invoice.stock_reversed)

            if transition.noop:
                logger.info(f"Factura {invoice.number} ya está en estado '{target.value}', sin cambios")
                return invoice

            if transition.reverses_stock:
                await self.reconciler.reconcile(uow, tenant, self._stored_quantities(invoice), [])
                invoice.stock_reversed = True
                logger.info(f"Stock de la factura {invoice.number} devuelto al inventario")

            invoice.status = target
            await uow.flush()

        logger.info(f"Factura {invoice.number}: {transition.current.value} -> {transition.target.value}")
        return invoice

    # ------------------------------------------------------------------
    # Lecturas
    # ------------------------------------------------------------------

    async def get_invoice(self, tenant_id: Union[UUID, str], invoice_id: UUID) -> Invoice:
        tenant = parse_tenant_id(tenant_id)
        invoice = (await self.db.execute(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.tenant_id == tenant)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Factura", invoice_id)
        return invoice

    async def list_invoices(
        self,
        tenant_id: Union[UUID, str],
        filters: Optional[InvoiceFilters] = None,
        limit: int = 20,
        offset: int = 0
    ) -> dict:
        """Obtener lista de facturas con filtros"""
        tenant = parse_tenant_id(tenant_id)
        filters = filters or InvoiceFilters()

        query = select(Invoice).where(Invoice.tenant_id == tenant)
        if filters.status:
            query = query.where(Invoice.status == filters.status)
        if filters.client_id:
            query = query.where(Invoice.client_id == filters.client_id)
        if filters.date_from:
            query = query.where(Invoice.issue_date >= filters.date_from)
        if filters.date_to:
            query = query.where(Invoice.issue_date <= filters.date_to)
        if filters.search:
            query = query.where(or_(
                Invoice.number.ilike(f"%{filters.search}%"),
                Invoice.notes.ilike(f"%{filters.search}%")
            ))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        invoices = (await self.db.execute(
            query.order_by(Invoice.created_at.desc(), Invoice.number.desc()).offset(offset).limit(limit)
        )).scalars().all()

        return {
            "invoices": invoices,
            "total": total,
            "limit": limit,
            "offset": offset
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _number_taken(self, uow: UnitOfWork, tenant: UUID, number: str) -> bool:
        exists = await uow.session.scalar(
            select(Invoice.id).where(Invoice.tenant_id == tenant, Invoice.number == number)
        )
        return exists is not None

    async def _ensure_number_available(self, uow: UnitOfWork, tenant: UUID, number: str):
        if await self._number_taken(uow, tenant, number):
            raise ConflictError(f"Ya existe una factura con el número {number}", number=number)

    async def _next_free_number(self, uow: UnitOfWork, tenant: UUID) -> str:
        """
        Siguiente número del contador que no esté ocupado.
        Un número manual puede adelantarse al contador; ese valor se salta.
        """
        number = await self.sequences.next_number(uow, tenant, "invoice")
        while await self._number_taken(uow, tenant, number):
            logger.warning(f"Número {number} ya asignado manualmente en empresa {tenant}, se toma el siguiente")
            number = await self.sequences.next_number(uow, tenant, "invoice")
        return number

    async def _get_for_update(self, uow: UnitOfWork, tenant: UUID, invoice_id: UUID) -> Invoice:
        invoice = (await uow.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id, Invoice.tenant_id == tenant)
            .with_for_update()
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Factura", invoice_id)
        return invoice

    async def _load_catalog(self, uow: UnitOfWork, tenant: UUID, product_ids: List[UUID]) -> Dict[UUID, Product]:
        # Ya cargados por el reconciliador; el identity map evita releer el stock
        rows = await uow.session.execute(
            select(Product).where(Product.tenant_id == tenant, Product.id.in_(product_ids))
        )
        catalog = {product.id: product for product in rows.scalars().all()}
        for product_id in product_ids:
            if product_id not in catalog:
                raise NotFoundError("Producto", product_id)
        return catalog

    def _build_line_items(self, items: List[InvoiceLineItemCreate], catalog: Dict[UUID, Product]) -> List[InvoiceLineItem]:
        line_items = []
        for position, item in enumerate(items):
            product = catalog[item.product_id]
            unit_price = item.unit_price if item.unit_price is not None else Decimal(product.price)
            line_items.append(InvoiceLineItem(
                product_id=product.id,
                position=position,
                code=product.code,
                name=product.name,
                quantity=item.quantity,
                unit_price=unit_price,
                tax_exempt=item.tax_exempt,
            ))
        return line_items

    def _apply_totals(self, invoice: Invoice, calculator: TaxCalculator):
        totals = calculator.calculate_totals(invoice.items)
        for line_item, line in zip(invoice.items, totals.lines):
            line_item.unit_price = line.unit_price
            line_item.line_subtotal = line.line_subtotal
            line_item.line_tax = line.line_tax
            line_item.line_total = line.line_total

        invoice.subtotal = totals.subtotal
        invoice.tax = totals.tax
        invoice.total = totals.total

    @staticmethod
    def _stored_quantities(invoice: Invoice) -> Dict[UUID, int]:
        return {item.product_id: item.quantity for item in invoice.items}

    def schedule_low_stock(self, uow: UnitOfWork, tenant: UUID, result: ReconciliationResult):
        if self.notifier is None or not result.levels:
            return
        alerts = low_stock_alerts(result.levels)
        if not alerts:
            return
        logger.warning(f"{len(alerts)} productos en o por debajo del umbral de stock (empresa {tenant})")

        notifier = self.notifier

        async def dispatch():
            await notifier.notify(tenant, alerts)

        uow.after_commit(dispatch)
