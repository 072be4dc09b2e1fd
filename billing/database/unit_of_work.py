"""
Unidad de trabajo transaccional.

Agrupa en una sola transacción todas las operaciones de una mutación
(asignación de número, validación y ajuste de stock, escritura del documento).
Se confirma al salir del bloque sin errores; ante cualquier excepción se hace
rollback y el almacenamiento queda exactamente como estaba.
"""
import logging
from typing import Awaitable, Callable, List

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from billing.common.exceptions import TransactionAbortedError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Límite transaccional explícito que se pasa al generador de secuencias,
    al reconciliador de stock y a la persistencia de facturas.

    Uso:
        async with UnitOfWork(db) as uow:
            number = await sequences.next_number(uow, tenant_id, "invoice")
            ...
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._after_commit: List[Callable[[], Awaitable[None]]] = []
        self.committed = False

    async def __aenter__(self) -> "UnitOfWork":
        if not self.session.in_transaction():
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            await self.session.rollback()
            if isinstance(exc, (IntegrityError, OperationalError)):
                logger.warning(f"Transaction aborted by storage: {exc}")
                raise TransactionAbortedError(str(exc.orig) if getattr(exc, "orig", None) else str(exc)) from exc
            return False

        try:
            await self.session.commit()
        except DBAPIError as e:
            await self.session.rollback()
            logger.error(f"Commit failed, transaction rolled back: {e}", exc_info=True)
            raise TransactionAbortedError(str(e.orig) if e.orig else str(e)) from e

        self.committed = True
        await self._run_after_commit()
        return False

    async def flush(self):
        """Flush explícito; los errores de integridad abortan toda la unidad."""
        await self.session.flush()

    def after_commit(self, callback: Callable[[], Awaitable[None]]):
        """Registrar un callback que se ejecuta solo si la transacción se confirma."""
        self._after_commit.append(callback)

    async def _run_after_commit(self):
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                await callback()
            except Exception as e:
                # Los efectos posteriores al commit son fire-and-forget
                logger.error(f"After-commit callback failed: {e}", exc_info=True)
