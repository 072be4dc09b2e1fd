from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from uuid import UUID
from datetime import date

from billing.core.config import settings
from billing.dependencies.dbDependencies import async_db_dependency
from billing.modules.auth.dependencies import AuthDependencies
from billing.modules.invoices.models import InvoiceStatus
from billing.modules.invoices.service import InvoiceService
from billing.modules.invoices.schemas import (
    InvoiceCreate, InvoiceUpdate, InvoiceStatusUpdate, InvoiceOut, InvoiceList, InvoiceFilters
)
from billing.modules.notifications.notifier import get_low_stock_notifier

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin", "seller"])),
    notifier = Depends(get_low_stock_notifier)
):
    """
    Crear una nueva factura de venta

    Validaciones:
    - Todos los productos deben pertenecer a la empresa
    - Stock suficiente para los productos físicos (los servicios no llevan stock)
    - Número consecutivo asignado automáticamente si no se envía uno

    Efectos:
    - Descuenta el stock de cada producto físico
    - Genera alertas de stock bajo después de confirmar
    """
    service = InvoiceService(db, notifier)
    return await service.create_invoice(auth_context.tenant_id, invoice_data)


@router.get("", response_model=InvoiceList)
async def list_invoices(
    db: async_db_dependency,
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status", description="Filtrar por estado"),
    client_id: Optional[UUID] = Query(None, description="Filtrar por cliente"),
    date_from: Optional[date] = Query(None, description="Fecha desde (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, description="Fecha hasta (YYYY-MM-DD)"),
    search: Optional[str] = Query(None, description="Buscar por número o notas"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    auth_context = Depends(AuthDependencies.require_any_role())
):
    """
    Listar facturas con filtros y paginación
    """
    filters = InvoiceFilters(
        status=status_filter,
        client_id=client_id,
        date_from=date_from,
        date_to=date_to,
        search=search
    )
    service = InvoiceService(db)
    return await service.list_invoices(auth_context.tenant_id, filters, limit, offset)


@router.get("/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(
    invoice_id: UUID,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_any_role())
):
    """
    Obtener factura por ID con sus ítems
    """
    service = InvoiceService(db)
    return await service.get_invoice(auth_context.tenant_id, invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceOut)
async def update_invoice(
    invoice_id: UUID,
    invoice_data: InvoiceUpdate,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin", "seller"])),
    notifier = Depends(get_low_stock_notifier)
):
    """
    Actualizar factura

    Si se envían ítems se reemplazan todos y el stock se ajusta por la
    diferencia. Las facturas canceladas o anuladas no se pueden modificar.
    """
    service = InvoiceService(db, notifier)
    return await service.update_invoice(auth_context.tenant_id, invoice_id, invoice_data)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: UUID,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    """
    Eliminar factura devolviendo su stock al inventario
    """
    service = InvoiceService(db)
    await service.delete_invoice(auth_context.tenant_id, invoice_id)


@router.patch("/{invoice_id}/status", response_model=InvoiceOut)
async def change_invoice_status(
    invoice_id: UUID,
    status_data: InvoiceStatusUpdate,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "accountant"]))
):
    """
    Cambiar el estado de la factura

    Cancelar o anular devuelve el stock una sola vez; repetir el estado
    actual no tiene efecto.
    """
    service = InvoiceService(db)
    return await service.change_status(auth_context.tenant_id, invoice_id, status_data.status)
