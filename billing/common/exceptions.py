"""
Taxonomía de errores del dominio de facturación.

Todos derivan de HTTPException para que los servicios puedan lanzarlos
directamente y FastAPI los devuelva al cliente con su detalle estructurado.
"""
from typing import Any, Optional
from uuid import UUID

from fastapi import HTTPException, status


class BillingError(HTTPException):
    """Base de los errores de dominio. `code` identifica el tipo de fallo."""

    code = "billing_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, headers: Optional[dict] = None, **extra: Any):
        self.message = message
        self.extra = extra
        detail = {"code": self.code, "message": message}
        detail.update({k: _jsonable(v) for k, v in extra.items()})
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)

    def __str__(self):
        return f"{self.code}: {self.message}"


class InvalidArgumentError(BillingError):
    code = "invalid_argument"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BillingError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Any, message: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            message or f"{resource} {resource_id} no existe o no pertenece a esta empresa",
            resource=resource,
            resource_id=resource_id,
        )


class ConflictError(BillingError):
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"No se permite pasar de '{current}' a '{target}'",
            current_status=current,
            target_status=target,
        )


class InsufficientStockError(BillingError):
    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_id: UUID, product_code: str, requested: int, available: int):
        self.product_id = product_id
        self.product_code = product_code
        self.requested = requested
        self.available = available
        super().__init__(
            f"Stock insuficiente para {product_code}. Disponible: {available}, Solicitado: {requested}",
            product_id=product_id,
            product_code=product_code,
            requested=requested,
            available=available,
        )


class TransactionAbortedError(BillingError):
    """Fallo de commit en el almacenamiento. Siempre es seguro reintentar."""

    code = "transaction_aborted"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, reason: str = ""):
        super().__init__(
            "La operación no pudo confirmarse, intente de nuevo",
            headers={"Retry-After": "1"},
            retryable=True,
            reason=reason,
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    return value
