from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
from uuid import UUID


@dataclass(frozen=True)
class PhysicalStock:
    """Producto con inventario. Es la única variante que admite un delta de stock."""
    product_id: UUID
    code: str
    name: str
    stock: int
    low_stock_threshold: Optional[int] = None


@dataclass(frozen=True)
class ServiceItem:
    """Servicio: exento de validación y de mutación de stock."""
    product_id: UUID
    code: str
    name: str


StockProfile = Union[PhysicalStock, ServiceItem]


@dataclass(frozen=True)
class StockLevel:
    """Stock resultante de un producto físico tras aplicar su delta."""
    product_id: UUID
    code: str
    name: str
    stock: int
    delta: int
    low_stock_threshold: Optional[int] = None


@dataclass
class ReconciliationResult:
    deltas: Dict[UUID, int] = field(default_factory=dict)
    levels: List[StockLevel] = field(default_factory=list)
    skipped_services: List[UUID] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.levels)
