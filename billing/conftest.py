import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./billing-test.db")
os.environ.setdefault("LOW_STOCK_NOTIFIER", "disabled")

from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

import httpx
import pytest
from sqlalchemy import event, select

from billing.database.database import Base, build_async_engine, build_session_factory, get_async_db
from billing.modules.auth.utils import create_context_token
from billing.modules.notifications.notifier import LowStockAlert, get_low_stock_notifier
from billing.modules.products.models import Product, ProductKind

# Registro de todas las tablas en Base.metadata
import billing.modules.numbering.models  # noqa: F401
import billing.modules.invoices.models  # noqa: F401
import billing.modules.documents.models  # noqa: F401
import billing.modules.notifications.models  # noqa: F401


class RecordingNotifier:
    """Notificador de pruebas: guarda cada llamada en memoria."""

    def __init__(self):
        self.calls: List[Tuple[UUID, List[LowStockAlert]]] = []

    async def notify(self, tenant_id: UUID, alerts: Sequence[LowStockAlert]) -> None:
        self.calls.append((tenant_id, list(alerts)))

    @property
    def alerts(self) -> List[LowStockAlert]:
        return [alert for _, batch in self.calls for alert in batch]


class FailingNotifier:
    async def notify(self, tenant_id: UUID, alerts: Sequence[LowStockAlert]) -> None:
        raise RuntimeError("broker unavailable")


@pytest.fixture
async def engine(tmp_path):
    engine = build_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}",
        connect_args={"timeout": 30}
    )

    # pysqlite no emite BEGIN por sí mismo; BEGIN IMMEDIATE serializa escritores como FOR UPDATE
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def make_product(session, tenant_id):
    """Crear productos confirmados en la base de datos de la prueba."""
    counter = {"n": 0}

    async def _make(
        stock: Optional[int] = 10,
        kind: ProductKind = ProductKind.PHYSICAL,
        price: Decimal = Decimal("10.00"),
        low_stock_threshold: Optional[int] = None,
        tenant: Optional[UUID] = None,
        code: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Product:
        counter["n"] += 1
        product = Product(
            tenant_id=tenant or tenant_id,
            code=code or f"P-{counter['n']:03d}",
            name=name or f"Producto {counter['n']}",
            kind=kind,
            stock=None if kind == ProductKind.SERVICE else stock,
            price=price,
            low_stock_threshold=low_stock_threshold,
        )
        session.add(product)
        await session.commit()
        # Desligado de la sesión: un rollback posterior no lo expira
        session.expunge(product)
        return product

    return _make


@pytest.fixture
def stock_of(session):
    """Leer el stock actual directo de la tabla y liberar la transacción."""

    async def _stock_of(product_id: UUID) -> Optional[int]:
        value = await session.scalar(select(Product.stock).where(Product.id == product_id))
        await session.commit()
        return value

    return _stock_of


@pytest.fixture
async def client(session_factory, notifier):
    from billing.main import app

    async def override_get_async_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_async_db] = override_get_async_db
    app.dependency_overrides[get_low_stock_notifier] = lambda: notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(tenant_id):
    def _headers(role: str = "owner", tenant: Optional[UUID] = None) -> dict:
        token = create_context_token(uuid4(), tenant or tenant_id, role)
        return {"Authorization": f"Bearer {token}"}
    return _headers
