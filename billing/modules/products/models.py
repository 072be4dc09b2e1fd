from billing.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, UniqueConstraint, Numeric, Enum, CheckConstraint, Uuid
from uuid import uuid4
from billing.common.mixins import TenantMixin, TimestampMixin
import enum


class ProductKind(enum.Enum):
    PHYSICAL = "physical"  # Bien con inventario
    SERVICE = "service"    # Servicio, nunca lleva stock


class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    kind = Column(
        Enum(ProductKind, values_callable=lambda kinds: [k.value for k in kinds], name="product_kind"),
        nullable=False,
        default=ProductKind.PHYSICAL
    )
    # Solo lo modifica el reconciliador de stock mediante incrementos atómicos
    stock = Column(Integer, nullable=True)
    low_stock_threshold = Column(Integer, nullable=True)  # Si es NULL se usa el umbral global
    price = Column(Numeric(15, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_product_tenant_code"),
        CheckConstraint(
            "(kind = 'service' AND stock IS NULL) OR (kind = 'physical' AND stock IS NOT NULL AND stock >= 0)",
            name="ck_product_kind_stock"
        ),
    )

    @property
    def is_physical(self) -> bool:
        return self.kind == ProductKind.PHYSICAL
