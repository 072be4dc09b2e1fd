from sqlalchemy import select, update
from sqlalchemy.orm.attributes import set_committed_value
from typing import Any, Dict, Iterable, Mapping, Union
from uuid import UUID
import logging

from billing.common.exceptions import InvalidArgumentError, NotFoundError, InsufficientStockError
from billing.common.validators import parse_tenant_id
from billing.database.unit_of_work import UnitOfWork
from billing.modules.inventory.schemas import (
    PhysicalStock, ServiceItem, StockProfile, StockLevel, ReconciliationResult
)
from billing.modules.products.models import Product, ProductKind

logger = logging.getLogger(__name__)

ItemSet = Union[Mapping[UUID, int], Iterable[Any], None]


def _field(item: Any, name: str):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def aggregate_quantities(items: ItemSet) -> Dict[UUID, int]:
    """
    Normalizar un conjunto de ítems a {product_id: cantidad}.

    Acepta un dict ya agregado o una lista de ítems (objetos o dicts con
    product_id y quantity). Un producto repetido en la misma factura se
    rechaza: las líneas deben venir agregadas por producto.
    """
    if not items:
        return {}

    if isinstance(items, Mapping):
        pairs = list(items.items())
    else:
        pairs = [(_field(item, "product_id"), _field(item, "quantity")) for item in items]

    quantities: Dict[UUID, int] = {}
    for raw_id, quantity in pairs:
        if raw_id is None:
            raise InvalidArgumentError("Cada ítem debe indicar product_id", field="product_id")
        product_id = raw_id if isinstance(raw_id, UUID) else _parse_product_id(raw_id)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidArgumentError(
                f"Cantidad inválida para el producto {product_id}: {quantity!r}",
                field="quantity",
                product_id=product_id
            )
        if product_id in quantities:
            raise InvalidArgumentError(
                f"El producto {product_id} aparece en más de una línea",
                field="items",
                product_id=product_id
            )
        quantities[product_id] = quantity
    return quantities


def _parse_product_id(raw_id: Any) -> UUID:
    try:
        return UUID(str(raw_id))
    except ValueError:
        raise InvalidArgumentError(f"product_id inválido: {raw_id!r}", field="product_id")


def compute_deltas(previous: Mapping[UUID, int], new: Mapping[UUID, int]) -> Dict[UUID, int]:
    """
    delta = cantidad_anterior - cantidad_nueva por producto.

    Positivo: stock que vuelve al inventario. Negativo: consumo.
    Los productos sin cambio neto no aparecen.
    """
    deltas = {}
    for product_id in set(previous) | set(new):
        delta = previous.get(product_id, 0) - new.get(product_id, 0)
        if delta:
            deltas[product_id] = delta
    return deltas


def to_profile(product: Product) -> StockProfile:
    if product.kind == ProductKind.SERVICE:
        return ServiceItem(product_id=product.id, code=product.code, name=product.name)
    return PhysicalStock(
        product_id=product.id,
        code=product.code,
        name=product.name,
        stock=product.stock,
        low_stock_threshold=product.low_stock_threshold
    )


class StockReconciler:
    """
    Reconciliador de stock para mutaciones de facturas.

    No es idempotente: cada llamada aplica sus deltas. Quien lo invoca debe
    hacerlo una sola vez por mutación lógica y dentro de la misma unidad de
    trabajo que la escritura de la factura.
    """

    async def reconcile(
        self,
        uow: UnitOfWork,
        tenant_id: Union[UUID, str],
        previous: ItemSet,
        new: ItemSet
    ) -> ReconciliationResult:
        tenant = parse_tenant_id(tenant_id)
        previous_qty = aggregate_quantities(previous)
        new_qty = aggregate_quantities(new)

        referenced = set(previous_qty) | set(new_qty)
        result = ReconciliationResult(deltas=compute_deltas(previous_qty, new_qty))
        if not referenced:
            return result

        products = await self._load_products(uow, tenant, referenced, lock=bool(result.deltas))

        missing = sorted(referenced - set(products), key=str)
        if missing:
            logger.warning(f"Productos inexistentes para empresa {tenant}: {missing}")
            raise NotFoundError("Producto", missing[0])

        profiles = {pid: to_profile(product) for pid, product in products.items()}

        # Validación completa antes de aplicar cualquier delta
        for product_id, delta in sorted(result.deltas.items(), key=lambda kv: str(kv[0])):
            profile = profiles[product_id]
            if isinstance(profile, ServiceItem):
                continue
            if delta < 0 and -delta > profile.stock:
                logger.warning(
                    f"Stock insuficiente para {profile.code}: disponible {profile.stock}, solicitado {-delta}"
                )
                raise InsufficientStockError(product_id, profile.code, -delta, profile.stock)

        # Orden determinista para evitar bloqueos cruzados entre transacciones
        for product_id in sorted(result.deltas, key=str):
            profile = profiles[product_id]
            if isinstance(profile, ServiceItem):
                result.skipped_services.append(product_id)
                continue
            level = await self._apply_delta(uow, tenant, profile, result.deltas[product_id])
            set_committed_value(products[product_id], "stock", level.stock)
            result.levels.append(level)

        return result

    async def _load_products(self, uow: UnitOfWork, tenant: UUID, product_ids, lock: bool) -> Dict[UUID, Product]:
        query = (
            select(Product)
            .where(Product.tenant_id == tenant, Product.id.in_(product_ids))
            .order_by(Product.id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        rows = await uow.session.execute(query)
        return {product.id: product for product in rows.scalars().all()}

    async def _apply_delta(self, uow: UnitOfWork, tenant: UUID, profile: PhysicalStock, delta: int) -> StockLevel:
        """
        Incremento atómico `stock = stock + delta` con guarda de no-negatividad.
        Si otra transacción consumió el stock entre la validación y la
        escritura, la guarda no encuentra fila y se aborta la operación.
        """
        stmt = (
            update(Product)
            .where(
                Product.id == profile.product_id,
                Product.tenant_id == tenant,
                Product.kind == ProductKind.PHYSICAL,
                Product.stock + delta >= 0
            )
            .values(stock=Product.stock + delta)
            .returning(Product.stock)
            .execution_options(synchronize_session=False)
        )
        row = (await uow.session.execute(stmt)).first()
        if row is None:
            current = await uow.session.scalar(
                select(Product.stock).where(Product.id == profile.product_id, Product.tenant_id == tenant)
            )
            raise InsufficientStockError(profile.product_id, profile.code, -delta, current or 0)

        new_stock = row[0]
        logger.debug(f"Stock de {profile.code}: {new_stock - delta} -> {new_stock} (delta {delta:+d})")
        return StockLevel(
            product_id=profile.product_id,
            code=profile.code,
            name=profile.name,
            stock=new_stock,
            delta=delta,
            low_stock_threshold=profile.low_stock_threshold
        )
