from fastapi import APIRouter, Depends, Query
from uuid import UUID

from billing.core.config import settings
from billing.dependencies.dbDependencies import async_db_dependency
from billing.modules.auth.dependencies import AuthDependencies
from billing.modules.notifications.service import StockMonitorService
from billing.modules.notifications.schemas import NotificationOut, NotificationList

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationList)
async def list_notifications(
    db: async_db_dependency,
    unread_only: bool = Query(False, description="Solo notificaciones sin leer"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    auth_context = Depends(AuthDependencies.require_any_role())
):
    """
    Listar notificaciones de la empresa, más recientes primero
    """
    return await StockMonitorService(db).list_notifications(
        auth_context.tenant_id, unread_only=unread_only, limit=limit, offset=offset
    )


@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_notification_as_read(
    notification_id: UUID,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_any_role())
):
    """
    Marcar una notificación como leída
    """
    return await StockMonitorService(db).mark_as_read(auth_context.tenant_id, notification_id)
