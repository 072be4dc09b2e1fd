from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Union
from uuid import UUID
import logging

from billing.common.exceptions import NotFoundError
from billing.common.validators import parse_tenant_id
from billing.core.config import settings
from billing.database.unit_of_work import UnitOfWork
from billing.modules.notifications.models import Notification, LOW_STOCK
from billing.modules.notifications.notifier import effective_threshold, severity_for
from billing.modules.products.models import Product, ProductKind

logger = logging.getLogger(__name__)


class StockMonitorService:
    """
    Monitor de inventario bajo.

    Crea como máximo una notificación sin leer de tipo `low_stock` por
    producto; cuando el usuario la marca como leída, una nueva bajada de
    stock vuelve a generar alerta.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_products(self, tenant_id: Union[UUID, str], product_ids: Iterable[Union[UUID, str]]) -> List[Notification]:
        """Verificar los productos indicados y crear las notificaciones que falten."""
        tenant = parse_tenant_id(tenant_id)
        ids = {pid if isinstance(pid, UUID) else UUID(str(pid)) for pid in product_ids}
        if not ids:
            return []

        created = []
        async with UnitOfWork(self.db) as uow:
            products = (await uow.session.execute(
                select(Product).where(
                    Product.tenant_id == tenant,
                    Product.id.in_(ids),
                    Product.kind == ProductKind.PHYSICAL,
                    Product.is_active == True
                ).order_by(Product.code).execution_options(populate_existing=True)
            )).scalars().all()

            low = [p for p in products if p.stock <= effective_threshold(p.low_stock_threshold)]
            if not low:
                return []

            active = await self._active_references(uow, tenant, [p.id for p in low])
            for product in low:
                if product.id in active:
                    logger.debug(f"Ya existe una alerta activa para {product.code}")
                    continue
                notification = self._build_notification(tenant, product)
                uow.session.add(notification)
                created.append(notification)

            await uow.flush()

        for notification in created:
            logger.info(f"Notificación de stock bajo creada para empresa {tenant}: {notification.title} ({notification.severity.value})")
        return created

    async def sweep(self) -> int:
        """
        Barrido periódico de todas las empresas.
        Devuelve la cantidad de notificaciones nuevas.
        """
        threshold = func.coalesce(Product.low_stock_threshold, settings.LOW_STOCK_THRESHOLD)
        rows = (await self.db.execute(
            select(Product.tenant_id, Product.id).where(
                Product.kind == ProductKind.PHYSICAL,
                Product.is_active == True,
                Product.stock <= threshold
            )
        )).all()

        by_tenant: Dict[UUID, List[UUID]] = {}
        for tenant, product_id in rows:
            by_tenant.setdefault(tenant, []).append(product_id)

        total = 0
        for tenant, product_ids in by_tenant.items():
            created = await self.check_products(tenant, product_ids)
            total += len(created)

        # Cierra la transacción de lectura si no hubo nada que verificar
        if self.db.in_transaction():
            await self.db.commit()

        logger.info(f"Verificación de stock bajo: {total} nuevas notificaciones en {len(by_tenant)} empresas")
        return total

    async def _active_references(self, uow: UnitOfWork, tenant: UUID, product_ids: List[UUID]) -> set:
        result = await uow.session.execute(
            select(Notification.reference_id).where(
                Notification.tenant_id == tenant,
                Notification.type == LOW_STOCK,
                Notification.reference_id.in_(product_ids),
                Notification.read == False
            )
        )
        return set(result.scalars().all())

    def _build_notification(self, tenant: UUID, product: Product) -> Notification:
        if product.stock <= 0:
            title = f"Sin stock: {product.name}"
            message = f"El producto {product.name} (Código: {product.code}) se quedó sin unidades disponibles."
        else:
            title = f"Stock bajo: {product.name}"
            message = f"El producto {product.name} (Código: {product.code}) tiene solo {product.stock} unidades disponibles."
        return Notification(
            tenant_id=tenant,
            type=LOW_STOCK,
            title=title,
            message=message,
            severity=severity_for(product.stock),
            reference_id=product.id,
            reference_type="product",
            link=f"/products/{product.id}",
            read=False
        )

    async def list_notifications(
        self,
        tenant_id: Union[UUID, str],
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0
    ) -> dict:
        tenant = parse_tenant_id(tenant_id)
        query = select(Notification).where(Notification.tenant_id == tenant)
        if unread_only:
            query = query.where(Notification.read == False)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        unread = await self.db.scalar(
            select(func.count(Notification.id)).where(Notification.tenant_id == tenant, Notification.read == False)
        )
        notifications = (await self.db.execute(
            query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
        )).scalars().all()

        return {
            "notifications": notifications,
            "total": total,
            "unread": unread,
            "limit": limit,
            "offset": offset
        }

    async def mark_as_read(self, tenant_id: Union[UUID, str], notification_id: UUID) -> Notification:
        """Marcar como leída. Repetir la operación no cambia read_at."""
        tenant = parse_tenant_id(tenant_id)
        async with UnitOfWork(self.db) as uow:
            notification = (await uow.session.execute(
                select(Notification).where(
                    Notification.id == notification_id,
                    Notification.tenant_id == tenant
                )
            )).scalar_one_or_none()
            if notification is None:
                raise NotFoundError("Notificación", notification_id)

            if not notification.read:
                notification.read = True
                notification.read_at = datetime.now(timezone.utc)
                await uow.flush()
                logger.info(f"Notificación {notification_id} marcada como leída")
        return notification
