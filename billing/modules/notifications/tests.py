"""
Tests para el módulo de Notificaciones

Cubren:
- Filtro de alertas por umbral (por producto o global)
- Severidad según el stock restante
- Una sola notificación activa por producto
- Barrido periódico de todas las empresas
- Notificadores: en proceso y Celery (fallos del broker no se propagan)
- Endpoints de listado y marcado como leída
"""

import pytest
from unittest.mock import patch
from uuid import uuid4

from billing.common.exceptions import NotFoundError
from billing.modules.inventory.schemas import StockLevel
from billing.modules.invoices.schemas import InvoiceCreate, InvoiceLineItemCreate
from billing.modules.invoices.service import InvoiceService
from billing.modules.notifications.models import NotificationSeverity
from billing.modules.notifications.notifier import (
    CeleryLowStockNotifier, InlineLowStockNotifier, LowStockAlert, low_stock_alerts, severity_for
)
from billing.modules.notifications.service import StockMonitorService
from billing.modules.products.models import ProductKind


def level(stock, threshold=None):
    return StockLevel(product_id=uuid4(), code="P", name="Producto", stock=stock, delta=-1, low_stock_threshold=threshold)


# ===== TESTS DE UMBRALES =====

class TestThresholds:

    def test_global_threshold_applies_when_product_has_none(self):
        alerts = low_stock_alerts([level(5), level(6)])
        assert [alert.stock for alert in alerts] == [5]

    def test_product_threshold_overrides_global(self):
        alerts = low_stock_alerts([level(8, threshold=10), level(2, threshold=1)])
        assert [alert.stock for alert in alerts] == [8]
        assert alerts[0].threshold == 10

    def test_zero_stock_is_alerted(self):
        assert low_stock_alerts([level(0)])[0].severity == NotificationSeverity.CRITICAL

    @pytest.mark.parametrize("stock,severity", [
        (0, NotificationSeverity.CRITICAL),
        (1, NotificationSeverity.WARNING),
        (3, NotificationSeverity.WARNING),
        (4, NotificationSeverity.INFO),
        (5, NotificationSeverity.INFO),
    ])
    def test_severity(self, stock, severity):
        assert severity_for(stock) == severity


# ===== TESTS DEL MONITOR =====

class TestStockMonitor:

    async def test_creates_one_notification_per_low_product(self, session, tenant_id, make_product):
        low = await make_product(stock=2)
        healthy = await make_product(stock=50)

        created = await StockMonitorService(session).check_products(tenant_id, [low.id, healthy.id])

        assert len(created) == 1
        assert created[0].reference_id == low.id
        assert created[0].severity == NotificationSeverity.WARNING
        assert created[0].type == "low_stock"
        assert not created[0].read

    async def test_does_not_duplicate_unread_notification(self, session, tenant_id, make_product):
        product = await make_product(stock=1)
        monitor = StockMonitorService(session)

        await monitor.check_products(tenant_id, [product.id])
        again = await monitor.check_products(tenant_id, [product.id])

        assert again == []
        listing = await monitor.list_notifications(tenant_id)
        assert listing["total"] == 1

    async def test_new_alert_after_previous_was_read(self, session, tenant_id, make_product):
        product = await make_product(stock=1)
        monitor = StockMonitorService(session)

        first = await monitor.check_products(tenant_id, [product.id])
        await monitor.mark_as_read(tenant_id, first[0].id)
        second = await monitor.check_products(tenant_id, [product.id])

        assert len(second) == 1
        assert second[0].id != first[0].id

    async def test_services_never_alert(self, session, tenant_id, make_product):
        service_item = await make_product(kind=ProductKind.SERVICE)

        created = await StockMonitorService(session).check_products(tenant_id, [service_item.id])

        assert created == []

    async def test_products_of_other_tenant_are_ignored(self, session, tenant_id, other_tenant_id, make_product):
        foreign = await make_product(stock=0, tenant=other_tenant_id)

        created = await StockMonitorService(session).check_products(tenant_id, [foreign.id])

        assert created == []

    async def test_sweep_covers_all_tenants(self, session, tenant_id, other_tenant_id, make_product):
        await make_product(stock=0)
        await make_product(stock=3, tenant=other_tenant_id)
        await make_product(stock=30)
        await make_product(stock=8, low_stock_threshold=10)

        monitor = StockMonitorService(session)
        assert await monitor.sweep() == 3
        assert await monitor.sweep() == 0

        mine = await monitor.list_notifications(tenant_id)
        theirs = await monitor.list_notifications(other_tenant_id)
        await session.commit()
        assert mine["total"] == 2
        assert theirs["total"] == 1

    async def test_mark_as_read_is_tenant_scoped(self, session, tenant_id, other_tenant_id, make_product):
        product = await make_product(stock=0)
        monitor = StockMonitorService(session)
        created = await monitor.check_products(tenant_id, [product.id])
        notification_id = created[0].id

        with pytest.raises(NotFoundError):
            await monitor.mark_as_read(other_tenant_id, notification_id)

        notification = await monitor.mark_as_read(tenant_id, notification_id)
        assert notification.read
        assert notification.read_at is not None

    async def test_list_unread_only(self, session, tenant_id, make_product):
        first = await make_product(stock=0)
        second = await make_product(stock=1)
        monitor = StockMonitorService(session)
        created = await monitor.check_products(tenant_id, [first.id, second.id])
        await monitor.mark_as_read(tenant_id, created[0].id)

        unread = await monitor.list_notifications(tenant_id, unread_only=True)

        assert unread["total"] == 1
        assert unread["unread"] == 1


# ===== TESTS DE NOTIFICADORES =====

class TestNotifiers:

    async def test_inline_notifier_creates_notifications_after_invoice(self, session, session_factory, tenant_id, make_product):
        product = await make_product(stock=6)
        notifier = InlineLowStockNotifier(session_factory)

        await InvoiceService(session, notifier).create_invoice(
            tenant_id, InvoiceCreate(items=[InvoiceLineItemCreate(product_id=product.id, quantity=6)])
        )

        listing = await StockMonitorService(session).list_notifications(tenant_id)
        await session.commit()
        assert listing["total"] == 1
        assert listing["notifications"][0].severity == NotificationSeverity.CRITICAL

    async def test_celery_notifier_enqueues_task(self, tenant_id):
        alert = LowStockAlert(product_id=uuid4(), code="P", name="Producto", stock=1, threshold=5)

        with patch("billing.modules.notifications.tasks.check_low_stock_task.delay") as delay:
            await CeleryLowStockNotifier().notify(tenant_id, [alert])

        delay.assert_called_once_with(str(tenant_id), [str(alert.product_id)])

    async def test_celery_notifier_swallows_broker_errors(self, tenant_id):
        alert = LowStockAlert(product_id=uuid4(), code="P", name="Producto", stock=1, threshold=5)

        with patch(
            "billing.modules.notifications.tasks.check_low_stock_task.delay",
            side_effect=ConnectionError("redis down")
        ):
            await CeleryLowStockNotifier().notify(tenant_id, [alert])

    async def test_empty_alerts_are_not_sent(self, tenant_id):
        with patch("billing.modules.notifications.tasks.check_low_stock_task.delay") as delay:
            await CeleryLowStockNotifier().notify(tenant_id, [])

        delay.assert_not_called()


# ===== TESTS DE API =====

class TestNotificationEndpoints:

    async def test_list_and_mark_as_read(self, client, auth_headers, session, tenant_id, make_product):
        product = await make_product(stock=0)
        created = await StockMonitorService(session).check_products(tenant_id, [product.id])
        notification_id = created[0].id

        listing = await client.get("/notifications", headers=auth_headers("viewer"))
        assert listing.status_code == 200
        assert listing.json()["unread"] == 1

        marked = await client.patch(f"/notifications/{notification_id}/read", headers=auth_headers("viewer"))
        assert marked.status_code == 200
        assert marked.json()["read"] is True

        unread = await client.get("/notifications", params={"unread_only": "true"}, headers=auth_headers())
        assert unread.json()["total"] == 0

    async def test_unknown_notification_is_404(self, client, auth_headers):
        response = await client.patch(f"/notifications/{uuid4()}/read", headers=auth_headers())
        assert response.status_code == 404
