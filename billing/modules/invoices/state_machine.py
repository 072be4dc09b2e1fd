"""
Máquina de estados de facturas.

Una sola tabla de transiciones que se consulta una vez por operación y dice
si el cambio está permitido, si es un no-op y si obliga a devolver el stock.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Union

from billing.common.exceptions import InvalidArgumentError, InvalidTransitionError
from billing.modules.invoices.models import InvoiceStatus

S = InvoiceStatus

TERMINAL_STATUSES: FrozenSet[InvoiceStatus] = frozenset({S.CANCELLED, S.VOID})

TRANSITIONS: Dict[InvoiceStatus, FrozenSet[InvoiceStatus]] = {
    S.DRAFT: frozenset({S.PENDING, S.CANCELLED}),
    S.PENDING: frozenset({S.PAID, S.PARTIAL, S.OVERDUE, S.CANCELLED, S.VOID}),
    S.PARTIAL: frozenset({S.PAID, S.OVERDUE, S.CANCELLED}),
    S.OVERDUE: frozenset({S.PAID, S.PARTIAL, S.CANCELLED}),
    S.PAID: frozenset({S.CANCELLED}),
    S.CANCELLED: frozenset(),
    S.VOID: frozenset(),
}


@dataclass(frozen=True)
class Transition:
    current: InvoiceStatus
    target: InvoiceStatus
    noop: bool = False
    reverses_stock: bool = False


def coerce_status(value: Union[InvoiceStatus, str]) -> InvoiceStatus:
    if isinstance(value, InvoiceStatus):
        return value
    try:
        return InvoiceStatus(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise InvalidArgumentError(f"{value!r} no es un estado válido", field="status")


def is_terminal(status: InvoiceStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_editable(status: InvoiceStatus) -> bool:
    """Las facturas canceladas o anuladas no admiten cambios de ítems."""
    return not is_terminal(status)


def evaluate_transition(current, target, stock_reversed: bool = False) -> Transition:
    """
    Resolver un cambio de estado contra la tabla.

    - Mismo estado: no-op (cancelar una factura ya cancelada no es error).
    - Entrar en un estado terminal desde uno no terminal devuelve el stock,
      salvo que ya se haya devuelto.
    - Cualquier otro cambio fuera de la tabla: InvalidTransition.
    """
    current = coerce_status(current)
    target = coerce_status(target)

    if current == target:
        return Transition(current, target, noop=True)

    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)

    return Transition(
        current,
        target,
        reverses_stock=is_terminal(target) and not stock_reversed
    )


def validate_initial_status(status) -> InvoiceStatus:
    status = coerce_status(status)
    if is_terminal(status):
        raise InvalidArgumentError(
            f"Una factura no puede crearse en estado '{status.value}'",
            field="status"
        )
    return status
