"""
Tests para el módulo de Facturación (Invoices)

Cubren:
- Máquina de estados (transiciones válidas, no-op, terminales)
- Creación: numeración, consumo de stock, totales e IVA
- Actualización con reconciliación de ítems
- Eliminación y cancelación con devolución de stock una sola vez
- Concurrencia: números distintos y consecutivos, stock nunca negativo
- Alertas de stock bajo después del commit
- Endpoints REST con contexto multi-tenant
"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from billing.common.exceptions import (
    ConflictError, InvalidArgumentError, InvalidTransitionError, InsufficientStockError, NotFoundError,
    TransactionAbortedError
)
from billing.modules.invoices.models import InvoiceStatus
from billing.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, InvoiceLineItemCreate, InvoiceFilters
from billing.modules.invoices.service import InvoiceService
from billing.modules.invoices.state_machine import evaluate_transition, validate_initial_status, TRANSITIONS
from billing.modules.numbering.service import SequenceGenerator
from billing.modules.products.models import ProductKind


def invoice_payload(*lines, **kwargs) -> InvoiceCreate:
    """lines: tuplas (producto, cantidad)"""
    return InvoiceCreate(
        items=[InvoiceLineItemCreate(product_id=product.id, quantity=qty) for product, qty in lines],
        **kwargs
    )


def items_update(*lines) -> InvoiceUpdate:
    return InvoiceUpdate(items=[InvoiceLineItemCreate(product_id=p.id, quantity=q) for p, q in lines])


# ===== TESTS DE MÁQUINA DE ESTADOS =====

class TestStateMachine:

    def test_same_status_is_noop(self):
        for status in InvoiceStatus:
            assert evaluate_transition(status, status).noop

    def test_entering_terminal_reverses_stock_once(self):
        assert evaluate_transition(InvoiceStatus.PENDING, InvoiceStatus.CANCELLED).reverses_stock
        assert evaluate_transition(InvoiceStatus.PENDING, InvoiceStatus.VOID).reverses_stock
        assert not evaluate_transition(
            InvoiceStatus.PENDING, InvoiceStatus.CANCELLED, stock_reversed=True
        ).reverses_stock

    def test_non_terminal_transition_keeps_stock(self):
        transition = evaluate_transition(InvoiceStatus.DRAFT, InvoiceStatus.PENDING)
        assert not transition.noop
        assert not transition.reverses_stock

    @pytest.mark.parametrize("current,target", [
        (InvoiceStatus.CANCELLED, InvoiceStatus.PENDING),
        (InvoiceStatus.VOID, InvoiceStatus.CANCELLED),
        (InvoiceStatus.PAID, InvoiceStatus.PENDING),
        (InvoiceStatus.DRAFT, InvoiceStatus.PAID),
    ])
    def test_illegal_transitions(self, current, target):
        with pytest.raises(InvalidTransitionError):
            evaluate_transition(current, target)

    def test_accepts_string_values(self):
        assert evaluate_transition("pending", "paid").target == InvoiceStatus.PAID

    def test_unknown_status_is_invalid_argument(self):
        with pytest.raises(InvalidArgumentError):
            evaluate_transition("pending", "archived")

    def test_terminal_states_have_no_exits(self):
        assert not TRANSITIONS[InvoiceStatus.CANCELLED]
        assert not TRANSITIONS[InvoiceStatus.VOID]

    def test_cannot_create_in_terminal_state(self):
        with pytest.raises(InvalidArgumentError):
            validate_initial_status(InvoiceStatus.VOID)


# ===== TESTS DE CREACIÓN =====

class TestCreateInvoice:

    async def test_scenario_a_consumes_stock_and_rejects_overdraw(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=5)
        service = InvoiceService(session)

        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 3)))

        assert invoice.number == "FAC-00001"
        assert await stock_of(product.id) == 2

        with pytest.raises(InsufficientStockError) as exc_info:
            await service.create_invoice(tenant_id, invoice_payload((product, 3)))
        assert exc_info.value.requested == 3
        assert exc_info.value.available == 2
        assert await stock_of(product.id) == 2

    async def test_failed_creation_does_not_consume_number(self, session, tenant_id, make_product):
        product = await make_product(stock=1)
        service = InvoiceService(session)

        with pytest.raises(InsufficientStockError):
            await service.create_invoice(tenant_id, invoice_payload((product, 2)))

        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 1)))
        assert invoice.number == "FAC-00001"

    async def test_totals_and_tax(self, session, tenant_id, make_product):
        taxed = await make_product(price=Decimal("10.00"))
        exempt = await make_product(price=Decimal("5.50"))

        invoice = await InvoiceService(session).create_invoice(
            tenant_id,
            InvoiceCreate(
                tax_rate=Decimal("0.16"),
                items=[
                    InvoiceLineItemCreate(product_id=taxed.id, quantity=3),
                    InvoiceLineItemCreate(product_id=exempt.id, quantity=2, tax_exempt=True),
                ]
            )
        )

        assert invoice.subtotal == Decimal("41.00")
        assert invoice.tax == Decimal("4.80")
        assert invoice.total == Decimal("45.80")
        assert [item.code for item in invoice.items] == [taxed.code, exempt.code]

    async def test_explicit_unit_price_overrides_catalog(self, session, tenant_id, make_product):
        product = await make_product(price=Decimal("10.00"))

        invoice = await InvoiceService(session).create_invoice(
            tenant_id,
            InvoiceCreate(
                tax_rate=Decimal("0"),
                items=[InvoiceLineItemCreate(product_id=product.id, quantity=1, unit_price=Decimal("7.25"))]
            )
        )

        assert invoice.items[0].unit_price == Decimal("7.25")
        assert invoice.total == Decimal("7.25")

    async def test_explicit_duplicate_number_is_conflict(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        await service.create_invoice(tenant_id, invoice_payload((product, 1), number="MANUAL-1"))

        with pytest.raises(ConflictError):
            await service.create_invoice(tenant_id, invoice_payload((product, 1), number="MANUAL-1"))

        assert await stock_of(product.id) == 9

    async def test_manual_number_ahead_of_counter_is_skipped(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)

        first = await service.create_invoice(tenant_id, invoice_payload((product, 1)))
        manual = await service.create_invoice(tenant_id, invoice_payload((product, 1), number="FAC-00002"))
        third = await service.create_invoice(tenant_id, invoice_payload((product, 1)))
        fourth = await service.create_invoice(tenant_id, invoice_payload((product, 1)))

        assert [first.number, manual.number, third.number, fourth.number] == [
            "FAC-00001", "FAC-00002", "FAC-00003", "FAC-00004"
        ]
        assert await stock_of(product.id) == 6
        config = await SequenceGenerator(session).get_config(tenant_id, "invoice")
        assert config.last_number == 4

    async def test_unknown_product_is_not_found(self, session, tenant_id, make_product):
        product = await make_product()
        payload = InvoiceCreate(items=[
            InvoiceLineItemCreate(product_id=product.id, quantity=1),
            InvoiceLineItemCreate(product_id=uuid4(), quantity=1),
        ])

        with pytest.raises(NotFoundError):
            await InvoiceService(session).create_invoice(tenant_id, payload)

    async def test_cannot_create_cancelled_invoice(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=5)

        with pytest.raises(InvalidArgumentError):
            await InvoiceService(session).create_invoice(
                tenant_id, invoice_payload((product, 1), status=InvoiceStatus.CANCELLED)
            )
        assert await stock_of(product.id) == 5

    async def test_invalid_tenant_is_rejected_before_storage(self, session, make_product):
        product = await make_product()
        with pytest.raises(InvalidArgumentError):
            await InvoiceService(session).create_invoice("", invoice_payload((product, 1)))

    async def test_service_only_invoice_never_touches_stock(self, session, tenant_id, make_product, stock_of):
        service_item = await make_product(kind=ProductKind.SERVICE, price=Decimal("100.00"))

        invoice = await InvoiceService(session).create_invoice(tenant_id, invoice_payload((service_item, 1000)))

        assert invoice.total > 0
        assert await stock_of(service_item.id) is None

    async def test_duplicate_product_lines_rejected_by_schema(self, make_product):
        product = await make_product()
        with pytest.raises(ValueError):
            invoice_payload((product, 1), (product, 2))


# ===== TESTS DE ACTUALIZACIÓN Y ELIMINACIÓN =====

class TestUpdateAndDelete:

    async def test_scenario_b_update_applies_net_delta(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 4)))
        assert await stock_of(product.id) == 6

        updated = await service.update_invoice(tenant_id, invoice.id, items_update((product, 2)))

        assert await stock_of(product.id) == 8
        assert updated.number == invoice.number
        assert [item.quantity for item in updated.items] == [2]

    async def test_update_with_same_items_is_stock_neutral(self, session, tenant_id, make_product, stock_of):
        first = await make_product(stock=10)
        second = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((first, 2), (second, 3)))

        await service.update_invoice(tenant_id, invoice.id, items_update((first, 2), (second, 3)))

        assert await stock_of(first.id) == 8
        assert await stock_of(second.id) == 7

    async def test_update_swapping_products(self, session, tenant_id, make_product, stock_of):
        old = await make_product(stock=10)
        new = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((old, 4)))

        await service.update_invoice(tenant_id, invoice.id, items_update((new, 5)))

        assert await stock_of(old.id) == 10
        assert await stock_of(new.id) == 5

    async def test_update_beyond_stock_leaves_invoice_untouched(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=5)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 2)))
        invoice_id = invoice.id

        with pytest.raises(InsufficientStockError):
            await service.update_invoice(tenant_id, invoice_id, items_update((product, 8)))

        assert await stock_of(product.id) == 3
        stored = await service.get_invoice(tenant_id, invoice_id)
        assert [item.quantity for item in stored.items] == [2]

    async def test_update_without_items_keeps_stock(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10, price=Decimal("10.00"))
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 1), tax_rate=Decimal("0.16")))

        updated = await service.update_invoice(
            tenant_id, invoice.id, InvoiceUpdate(notes="Entrega parcial", tax_rate=Decimal("0"))
        )

        assert updated.notes == "Entrega parcial"
        assert updated.total == Decimal("10.00")
        assert await stock_of(product.id) == 9

    async def test_update_cancelled_invoice_is_conflict(self, session, tenant_id, make_product):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 1)))
        await service.change_status(tenant_id, invoice.id, InvoiceStatus.CANCELLED)

        with pytest.raises(ConflictError):
            await service.update_invoice(tenant_id, invoice.id, items_update((product, 2)))

    async def test_delete_returns_stock(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 7)))

        await service.delete_invoice(tenant_id, invoice.id)

        assert await stock_of(product.id) == 10
        with pytest.raises(NotFoundError):
            await service.get_invoice(tenant_id, invoice.id)

    async def test_delete_after_cancel_does_not_double_return(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 4)))
        await service.change_status(tenant_id, invoice.id, InvoiceStatus.CANCELLED)

        await service.delete_invoice(tenant_id, invoice.id)

        assert await stock_of(product.id) == 10

    async def test_other_tenant_cannot_touch_invoice(self, session, tenant_id, other_tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 2)))
        invoice_id = invoice.id

        with pytest.raises(NotFoundError):
            await service.delete_invoice(other_tenant_id, invoice_id)
        with pytest.raises(NotFoundError):
            await service.get_invoice(other_tenant_id, invoice_id)

        assert await stock_of(product.id) == 8


# ===== TESTS DE CAMBIO DE ESTADO =====

class TestChangeStatus:

    async def test_scenario_c_cancel_returns_stock_once(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 4)))
        assert await stock_of(product.id) == 6

        cancelled = await service.change_status(tenant_id, invoice.id, InvoiceStatus.CANCELLED)
        assert cancelled.status == InvoiceStatus.CANCELLED
        assert cancelled.stock_reversed
        assert await stock_of(product.id) == 10

        again = await service.change_status(tenant_id, invoice.id, "cancelled")
        assert again.status == InvoiceStatus.CANCELLED
        assert await stock_of(product.id) == 10

    async def test_paid_then_cancelled_returns_stock(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(
            tenant_id, invoice_payload((product, 3), status=InvoiceStatus.PENDING)
        )

        await service.change_status(tenant_id, invoice.id, InvoiceStatus.PAID)
        assert await stock_of(product.id) == 7

        await service.change_status(tenant_id, invoice.id, InvoiceStatus.CANCELLED)
        assert await stock_of(product.id) == 10

    async def test_void_returns_stock(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(
            tenant_id, invoice_payload((product, 5), status=InvoiceStatus.PENDING)
        )

        await service.change_status(tenant_id, invoice.id, InvoiceStatus.VOID)

        assert await stock_of(product.id) == 10

    async def test_illegal_transition_changes_nothing(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        invoice = await service.create_invoice(tenant_id, invoice_payload((product, 2)))
        await service.change_status(tenant_id, invoice.id, InvoiceStatus.CANCELLED)
        invoice_id = invoice.id

        with pytest.raises(InvalidTransitionError):
            await service.change_status(tenant_id, invoice_id, InvoiceStatus.PENDING)

        stored = await service.get_invoice(tenant_id, invoice_id)
        assert stored.status == InvoiceStatus.CANCELLED
        assert await stock_of(product.id) == 10


# ===== TESTS DE TRANSACCIONES ABORTADAS =====

class TestTransactionAborted:
    """Una violación de unicidad en el commit aborta todo y es reintentable."""

    async def test_unique_violation_aborts_and_leaves_storage_unchanged(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        await service.create_invoice(tenant_id, invoice_payload((product, 1), number="FAC-00001"))

        # Sin la verificación previa el contador entrega FAC-00001 otra vez
        with patch.object(InvoiceService, "_number_taken", AsyncMock(return_value=False)):
            with pytest.raises(TransactionAbortedError) as exc_info:
                await service.create_invoice(tenant_id, invoice_payload((product, 2)))

        error = exc_info.value
        assert error.status_code == 503
        assert error.headers["Retry-After"] == "1"
        assert error.detail["code"] == "transaction_aborted"
        assert error.detail["retryable"] is True
        assert await stock_of(product.id) == 9
        config = await SequenceGenerator(session).get_config(tenant_id, "invoice")
        assert config.last_number == 0

    async def test_retry_after_abort_succeeds(self, session, tenant_id, make_product):
        product = await make_product(stock=10)
        service = InvoiceService(session)
        await service.create_invoice(tenant_id, invoice_payload((product, 1), number="FAC-00001"))

        with patch.object(InvoiceService, "_number_taken", AsyncMock(return_value=False)):
            with pytest.raises(TransactionAbortedError):
                await service.create_invoice(tenant_id, invoice_payload((product, 1)))

        retried = await service.create_invoice(tenant_id, invoice_payload((product, 1)))
        assert retried.number == "FAC-00002"

    async def test_api_returns_503_with_retry_after(self, client, auth_headers, make_product, stock_of):
        product = await make_product(stock=10)
        payload = {"number": "FAC-00001", "items": [{"product_id": str(product.id), "quantity": 1}]}
        created = await client.post("/invoices", json=payload, headers=auth_headers())
        assert created.status_code == 201, created.text

        with patch.object(InvoiceService, "_number_taken", AsyncMock(return_value=False)):
            response = await client.post("/invoices", json=payload, headers=auth_headers())

        assert response.status_code == 503
        assert response.headers["retry-after"] == "1"
        assert response.json()["detail"]["retryable"] is True
        assert await stock_of(product.id) == 9


# ===== TESTS DE CONCURRENCIA =====

class TestConcurrency:

    async def test_scenario_d_concurrent_creations_get_distinct_numbers(self, session, session_factory, tenant_id, make_product):
        product = await make_product(stock=100)

        async def create():
            async with session_factory() as own_session:
                invoice = await InvoiceService(own_session).create_invoice(tenant_id, invoice_payload((product, 1)))
                return invoice.number

        numbers = await asyncio.gather(*[create() for _ in range(5)])

        assert sorted(numbers) == [f"FAC-{n:05d}" for n in range(1, 6)]

    async def test_concurrent_creations_never_overdraw(self, session, session_factory, tenant_id, make_product, stock_of):
        product = await make_product(stock=3)

        async def create():
            async with session_factory() as own_session:
                try:
                    await InvoiceService(own_session).create_invoice(tenant_id, invoice_payload((product, 1)))
                    return True
                except InsufficientStockError:
                    return False

        results = await asyncio.gather(*[create() for _ in range(6)])

        assert results.count(True) == 3
        assert await stock_of(product.id) == 0
        config = await SequenceGenerator(session).get_config(tenant_id, "invoice")
        assert config.last_number == 3


# ===== TESTS DE ALERTAS =====

class TestLowStockAlerts:

    async def test_alert_sent_when_stock_reaches_threshold(self, session, tenant_id, make_product, notifier):
        product = await make_product(stock=8, low_stock_threshold=5)

        await InvoiceService(session, notifier).create_invoice(tenant_id, invoice_payload((product, 3)))

        assert len(notifier.calls) == 1
        called_tenant, alerts = notifier.calls[0]
        assert called_tenant == tenant_id
        assert alerts[0].product_id == product.id
        assert alerts[0].stock == 5

    async def test_no_alert_above_threshold(self, session, tenant_id, make_product, notifier):
        product = await make_product(stock=20, low_stock_threshold=5)

        await InvoiceService(session, notifier).create_invoice(tenant_id, invoice_payload((product, 3)))

        assert notifier.calls == []

    async def test_no_alert_when_transaction_fails(self, session, tenant_id, make_product, notifier):
        low = await make_product(stock=3)
        scarce = await make_product(stock=0)

        with pytest.raises(InsufficientStockError):
            await InvoiceService(session, notifier).create_invoice(
                tenant_id, invoice_payload((low, 1), (scarce, 1))
            )

        assert notifier.calls == []

    async def test_notifier_failure_does_not_fail_invoice(self, session, tenant_id, make_product, stock_of, failing_notifier):
        product = await make_product(stock=2)

        invoice = await InvoiceService(session, failing_notifier).create_invoice(
            tenant_id, invoice_payload((product, 1))
        )

        assert invoice.number == "FAC-00001"
        assert await stock_of(product.id) == 1


# ===== TESTS DE LISTADO =====

class TestListInvoices:

    async def test_list_is_tenant_scoped_and_filtered(self, session, tenant_id, other_tenant_id, make_product):
        product = await make_product(stock=50)
        foreign = await make_product(stock=50, tenant=other_tenant_id)
        service = InvoiceService(session)

        draft = await service.create_invoice(tenant_id, invoice_payload((product, 1)))
        await service.create_invoice(tenant_id, invoice_payload((product, 1), status=InvoiceStatus.PENDING))
        await service.create_invoice(other_tenant_id, invoice_payload((foreign, 1)))

        everything = await service.list_invoices(tenant_id)
        assert everything["total"] == 2

        drafts = await service.list_invoices(tenant_id, InvoiceFilters(status=InvoiceStatus.DRAFT))
        assert [invoice.id for invoice in drafts["invoices"]] == [draft.id]


# ===== TESTS DE API =====

class TestInvoiceEndpoints:

    async def test_create_and_fetch(self, client, auth_headers, make_product, stock_of):
        product = await make_product(stock=10, price=Decimal("2.50"))

        response = await client.post(
            "/invoices",
            json={"items": [{"product_id": str(product.id), "quantity": 4}], "tax_rate": "0.16"},
            headers=auth_headers("seller")
        )
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["number"] == "FAC-00001"
        assert Decimal(body["total"]) == Decimal("11.60")
        assert await stock_of(product.id) == 6

        fetched = await client.get(f"/invoices/{body['id']}", headers=auth_headers("viewer"))
        assert fetched.status_code == 200
        assert fetched.json()["items"][0]["quantity"] == 4

    async def test_insufficient_stock_is_409(self, client, auth_headers, make_product):
        product = await make_product(stock=1)

        response = await client.post(
            "/invoices",
            json={"items": [{"product_id": str(product.id), "quantity": 2}]},
            headers=auth_headers()
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "insufficient_stock"
        assert detail["available"] == 1
        assert detail["requested"] == 2

    async def test_status_change_and_illegal_transition(self, client, auth_headers, make_product, stock_of):
        product = await make_product(stock=10)
        created = (await client.post(
            "/invoices",
            json={"items": [{"product_id": str(product.id), "quantity": 3}]},
            headers=auth_headers()
        )).json()

        cancelled = await client.patch(
            f"/invoices/{created['id']}/status", json={"status": "cancelled"}, headers=auth_headers()
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["stock_reversed"] is True
        assert await stock_of(product.id) == 10

        illegal = await client.patch(
            f"/invoices/{created['id']}/status", json={"status": "paid"}, headers=auth_headers()
        )
        assert illegal.status_code == 409
        assert illegal.json()["detail"]["code"] == "invalid_transition"

    async def test_viewer_cannot_create(self, client, auth_headers, make_product):
        product = await make_product()
        response = await client.post(
            "/invoices",
            json={"items": [{"product_id": str(product.id), "quantity": 1}]},
            headers=auth_headers("viewer")
        )
        assert response.status_code == 403

    async def test_delete_endpoint(self, client, auth_headers, make_product, stock_of):
        product = await make_product(stock=10)
        created = (await client.post(
            "/invoices",
            json={"items": [{"product_id": str(product.id), "quantity": 5}]},
            headers=auth_headers()
        )).json()

        response = await client.delete(f"/invoices/{created['id']}", headers=auth_headers("admin"))

        assert response.status_code == 204
        assert await stock_of(product.id) == 10

    async def test_other_tenant_gets_404(self, client, auth_headers, make_product, other_tenant_id):
        product = await make_product()
        created = (await client.post(
            "/invoices",
            json={"items": [{"product_id": str(product.id), "quantity": 1}]},
            headers=auth_headers()
        )).json()

        response = await client.get(f"/invoices/{created['id']}", headers=auth_headers(tenant=other_tenant_id))
        assert response.status_code == 404

    async def test_empty_items_rejected(self, client, auth_headers):
        response = await client.post("/invoices", json={"items": []}, headers=auth_headers())
        assert response.status_code == 422

    async def test_list_endpoint(self, client, auth_headers, make_product):
        product = await make_product(stock=10)
        for _ in range(2):
            await client.post(
                "/invoices",
                json={"items": [{"product_id": str(product.id), "quantity": 1}]},
                headers=auth_headers()
            )

        response = await client.get("/invoices", params={"status": "draft"}, headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["total"] == 2
