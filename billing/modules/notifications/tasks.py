"""
Background tasks for low-stock alerts
"""
from sqlalchemy.pool import NullPool
from billing.core.celery import celery_app
from billing.database.database import build_async_engine, build_session_factory
from billing.modules.notifications.service import StockMonitorService
from typing import List
import asyncio
import logging

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def check_low_stock_task(self, tenant_id: str, product_ids: List[str]):
    """
    Crear las notificaciones de stock bajo de los productos tocados por una factura
    """
    try:
        logger.info(f"Checking low stock for tenant {tenant_id}: {len(product_ids)} products")
        created = asyncio.run(_check_products_async(tenant_id, product_ids))
        return {"status": "completed", "created": created}
    except Exception as e:
        logger.error(f"Low stock check failed for tenant {tenant_id}: {str(e)}")
        raise self.retry(exc=e, countdown=30)


@celery_app.task
def sweep_low_stock_products():
    """
    Periodic task that checks every tenant's inventory
    """
    try:
        created = asyncio.run(_sweep_async())
        logger.info(f"Low stock sweep completed: {created} new notifications")
        return {"status": "completed", "created": created}
    except Exception as e:
        logger.error(f"Low stock sweep failed: {str(e)}")
        raise


async def _run_with_session(callback):
    # Cada asyncio.run trae su propio event loop; el engine no se comparte entre corridas
    engine = build_async_engine(poolclass=NullPool)
    try:
        async with build_session_factory(engine)() as db:
            return await callback(StockMonitorService(db))
    finally:
        await engine.dispose()


async def _check_products_async(tenant_id: str, product_ids: List[str]) -> int:
    async def check(monitor: StockMonitorService):
        return len(await monitor.check_products(tenant_id, product_ids))
    return await _run_with_session(check)


async def _sweep_async() -> int:
    async def sweep(monitor: StockMonitorService):
        return await monitor.sweep()
    return await _run_with_session(sweep)
