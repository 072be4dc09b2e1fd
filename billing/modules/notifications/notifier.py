"""
Disparo de alertas de inventario bajo.

El gestor de facturas entrega las alertas después del commit; el envío es
fire-and-forget y un fallo aquí nunca revierte ni invalida la factura.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence
from uuid import UUID
import asyncio
import logging

from billing.core.config import settings
from billing.modules.inventory.schemas import StockLevel
from billing.modules.notifications.models import NotificationSeverity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LowStockAlert:
    product_id: UUID
    code: str
    name: str
    stock: int
    threshold: int

    @property
    def severity(self) -> NotificationSeverity:
        return severity_for(self.stock)


def effective_threshold(product_threshold: Optional[int]) -> int:
    if product_threshold is None:
        return settings.LOW_STOCK_THRESHOLD
    return product_threshold


def severity_for(stock: int) -> NotificationSeverity:
    if stock <= 0:
        return NotificationSeverity.CRITICAL
    if stock <= settings.LOW_STOCK_WARNING_THRESHOLD:
        return NotificationSeverity.WARNING
    return NotificationSeverity.INFO


def low_stock_alerts(levels: Iterable[StockLevel]) -> List[LowStockAlert]:
    """Filtrar los niveles resultantes que quedaron en o por debajo del umbral."""
    alerts = []
    for level in levels:
        threshold = effective_threshold(level.low_stock_threshold)
        if level.stock <= threshold:
            alerts.append(LowStockAlert(
                product_id=level.product_id,
                code=level.code,
                name=level.name,
                stock=level.stock,
                threshold=threshold
            ))
    return alerts


class LowStockNotifier(Protocol):
    async def notify(self, tenant_id: UUID, alerts: Sequence[LowStockAlert]) -> None:
        ...


class CeleryLowStockNotifier:
    """Encola la verificación en Celery; el worker crea las notificaciones."""

    async def notify(self, tenant_id: UUID, alerts: Sequence[LowStockAlert]) -> None:
        if not alerts:
            return
        from billing.modules.notifications.tasks import check_low_stock_task

        product_ids = [str(alert.product_id) for alert in alerts]
        try:
            # delay() publica en el broker de forma síncrona
            await asyncio.to_thread(check_low_stock_task.delay, str(tenant_id), product_ids)
            logger.info(f"Verificación de stock bajo encolada para empresa {tenant_id}: {len(product_ids)} productos")
        except Exception as e:
            logger.error(f"No se pudo encolar la verificación de stock bajo para empresa {tenant_id}: {e}")


class InlineLowStockNotifier:
    """Crea las notificaciones en el mismo proceso, con su propia sesión."""

    def __init__(self, session_factory=None):
        if session_factory is None:
            from billing.database.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory

    async def notify(self, tenant_id: UUID, alerts: Sequence[LowStockAlert]) -> None:
        if not alerts:
            return
        from billing.modules.notifications.service import StockMonitorService

        try:
            async with self.session_factory() as session:
                await StockMonitorService(session).check_products(
                    tenant_id, [alert.product_id for alert in alerts]
                )
        except Exception as e:
            logger.error(f"Error creando notificaciones de stock bajo para empresa {tenant_id}: {e}", exc_info=True)


def get_low_stock_notifier() -> Optional[LowStockNotifier]:
    """Dependencia: notificador configurado por LOW_STOCK_NOTIFIER."""
    if settings.LOW_STOCK_NOTIFIER == "inline":
        return InlineLowStockNotifier()
    if settings.LOW_STOCK_NOTIFIER == "disabled":
        return None
    return CeleryLowStockNotifier()
