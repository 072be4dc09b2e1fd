from fastapi import APIRouter, Depends, status
from typing import Optional
from uuid import UUID

from billing.dependencies.dbDependencies import async_db_dependency
from billing.modules.auth.dependencies import AuthDependencies
from billing.modules.documents.service import DocumentService
from billing.modules.documents.schemas import (
    DocumentCreate, DocumentUpdate, DocumentStatusUpdate, DocumentConvert, DocumentOut, DocumentConversionOut
)
from billing.modules.notifications.notifier import get_low_stock_notifier

router = APIRouter(prefix="/documents", tags=["Documents"])


@router.post("", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin", "seller"]))
):
    """
    Crear cotización, proforma o nota de entrega (no mueve inventario)
    """
    return await DocumentService(db).create_document(auth_context.tenant_id, document_data)


@router.get("/{document_id}", response_model=DocumentOut)
async def get_document(
    document_id: UUID,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_any_role())
):
    return await DocumentService(db).get_document(auth_context.tenant_id, document_id)


@router.put("/{document_id}", response_model=DocumentOut)
async def update_document(
    document_id: UUID,
    document_data: DocumentUpdate,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin", "seller"]))
):
    """
    Actualizar documento; los convertidos ya no se pueden modificar
    """
    return await DocumentService(db).update_document(auth_context.tenant_id, document_id, document_data)


@router.patch("/{document_id}/status", response_model=DocumentOut)
async def change_document_status(
    document_id: UUID,
    status_data: DocumentStatusUpdate,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin", "seller"]))
):
    return await DocumentService(db).change_status(auth_context.tenant_id, document_id, status_data.status)


@router.post("/{document_id}/convert", response_model=DocumentConversionOut)
async def convert_document_to_invoice(
    document_id: UUID,
    db: async_db_dependency,
    conversion: Optional[DocumentConvert] = None,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin", "seller"])),
    notifier = Depends(get_low_stock_notifier)
):
    """
    Convertir un documento aprobado en factura

    La factura toma ítems, precios e impuestos del documento y consume el
    stock; todo se confirma en una sola transacción.
    """
    document, invoice = await DocumentService(db, notifier).convert_to_invoice(
        auth_context.tenant_id, document_id, conversion
    )
    return {"document": document, "invoice": invoice}
