"""
Tests para el reconciliador de stock

Cubren:
- Agregación de ítems y cálculo de deltas (anterior - nuevo)
- Consumo, devolución y ajustes mixtos
- Validación completa antes de aplicar: sin escrituras parciales
- Servicios exentos de stock
- Aislamiento por empresa
"""

import pytest
from sqlalchemy import update
from uuid import uuid4

from billing.common.exceptions import InvalidArgumentError, NotFoundError, InsufficientStockError
from billing.database.unit_of_work import UnitOfWork
from billing.modules.inventory.reconciler import StockReconciler, aggregate_quantities, compute_deltas
from billing.modules.products.models import Product, ProductKind


async def reconcile(session, tenant_id, previous, new):
    async with UnitOfWork(session) as uow:
        return await StockReconciler().reconcile(uow, tenant_id, previous, new)


# ===== TESTS DE FUNCIONES PURAS =====

class TestDeltas:

    def test_compute_deltas_previous_minus_new(self):
        a, b, c = uuid4(), uuid4(), uuid4()
        deltas = compute_deltas({a: 5, b: 2}, {a: 3, c: 4})
        assert deltas == {a: 2, b: 2, c: -4}

    def test_unchanged_products_are_omitted(self):
        a = uuid4()
        assert compute_deltas({a: 3}, {a: 3}) == {}

    def test_aggregate_accepts_dicts_and_objects(self):
        a = uuid4()
        assert aggregate_quantities([{"product_id": str(a), "quantity": 2}]) == {a: 2}
        assert aggregate_quantities({a: 4}) == {a: 4}
        assert aggregate_quantities(None) == {}

    def test_duplicate_product_rejected(self):
        a = uuid4()
        with pytest.raises(InvalidArgumentError):
            aggregate_quantities([{"product_id": a, "quantity": 1}, {"product_id": a, "quantity": 2}])

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_invalid_quantity_rejected(self, quantity):
        with pytest.raises(InvalidArgumentError):
            aggregate_quantities([{"product_id": uuid4(), "quantity": quantity}])


# ===== TESTS DE RECONCILIACIÓN =====

class TestReconcile:

    async def test_consumes_stock_for_new_items(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=10)

        result = await reconcile(session, tenant_id, [], {product.id: 3})

        assert await stock_of(product.id) == 7
        assert result.deltas == {product.id: -3}
        assert result.levels[0].stock == 7

    async def test_returns_stock_for_removed_items(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=4)

        await reconcile(session, tenant_id, {product.id: 6}, [])

        assert await stock_of(product.id) == 10

    async def test_mixed_adjustment(self, session, tenant_id, make_product, stock_of):
        kept = await make_product(stock=10)
        removed = await make_product(stock=1)
        added = await make_product(stock=5)

        await reconcile(
            session, tenant_id,
            {kept.id: 2, removed.id: 4},
            {kept.id: 5, added.id: 5}
        )

        assert await stock_of(kept.id) == 7
        assert await stock_of(removed.id) == 5
        assert await stock_of(added.id) == 0

    async def test_consuming_exact_stock_is_allowed(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=3)
        await reconcile(session, tenant_id, [], {product.id: 3})
        assert await stock_of(product.id) == 0

    async def test_insufficient_stock_leaves_everything_unchanged(self, session, tenant_id, make_product, stock_of):
        plenty = await make_product(stock=100)
        scarce = await make_product(stock=1, code="SCARCE")

        with pytest.raises(InsufficientStockError) as exc_info:
            await reconcile(session, tenant_id, [], {plenty.id: 5, scarce.id: 2})

        assert exc_info.value.product_code == "SCARCE"
        assert exc_info.value.requested == 2
        assert exc_info.value.available == 1
        assert await stock_of(plenty.id) == 100
        assert await stock_of(scarce.id) == 1

    async def test_services_are_skipped(self, session, tenant_id, make_product, stock_of):
        service = await make_product(kind=ProductKind.SERVICE)

        result = await reconcile(session, tenant_id, [], {service.id: 50})

        assert result.skipped_services == [service.id]
        assert result.levels == []
        assert await stock_of(service.id) is None

    async def test_unknown_product_is_not_found(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=5)

        with pytest.raises(NotFoundError):
            await reconcile(session, tenant_id, [], {product.id: 1, uuid4(): 1})

        assert await stock_of(product.id) == 5

    async def test_product_of_other_tenant_is_not_found(self, session, tenant_id, other_tenant_id, make_product, stock_of):
        foreign = await make_product(stock=5, tenant=other_tenant_id)

        with pytest.raises(NotFoundError):
            await reconcile(session, tenant_id, [], {foreign.id: 1})

        assert await stock_of(foreign.id) == 5

    async def test_no_changes_is_a_no_op(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=5)

        result = await reconcile(session, tenant_id, {product.id: 2}, {product.id: 2})

        assert not result.changed
        assert await stock_of(product.id) == 5


class RacingReconciler(StockReconciler):
    """Otra transacción consume stock entre la lectura y la escritura."""

    def __init__(self, product_id, stock_after_race):
        self.product_id = product_id
        self.stock_after_race = stock_after_race

    async def _load_products(self, uow, tenant, product_ids, lock):
        products = await super()._load_products(uow, tenant, product_ids, lock)
        await uow.session.execute(
            update(Product)
            .where(Product.id == self.product_id)
            .values(stock=self.stock_after_race)
            .execution_options(synchronize_session=False)
        )
        return products


# ===== TESTS DE CARRERA EN LA ESCRITURA =====

class TestGuardedUpdate:

    async def test_lost_race_raises_insufficient_stock(self, session, tenant_id, make_product, stock_of):
        plenty = await make_product(stock=100)
        scarce = await make_product(stock=5, code="RACE")
        reconciler = RacingReconciler(scarce.id, stock_after_race=1)

        with pytest.raises(InsufficientStockError) as exc_info:
            async with UnitOfWork(session) as uow:
                await reconciler.reconcile(uow, tenant_id, [], {plenty.id: 10, scarce.id: 3})

        assert exc_info.value.product_code == "RACE"
        assert exc_info.value.requested == 3
        assert exc_info.value.available == 1
        assert await stock_of(plenty.id) == 100
        assert await stock_of(scarce.id) == 5

    async def test_race_that_leaves_enough_stock_still_applies(self, session, tenant_id, make_product, stock_of):
        product = await make_product(stock=5)
        reconciler = RacingReconciler(product.id, stock_after_race=4)

        async with UnitOfWork(session) as uow:
            result = await reconciler.reconcile(uow, tenant_id, [], {product.id: 3})

        assert result.levels[0].stock == 1
        assert await stock_of(product.id) == 1
