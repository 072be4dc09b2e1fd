from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Union
from uuid import UUID, uuid4
import logging

from billing.common.exceptions import InvalidArgumentError
from billing.common.validators import parse_tenant_id, normalize_document_type
from billing.core.config import settings
from billing.database.unit_of_work import UnitOfWork
from billing.modules.numbering.models import DocumentSequence, DEFAULT_PREFIXES
from billing.modules.numbering.schemas import NumberingConfigOut, NextNumberPreview

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def default_prefix(document_type: str) -> str:
    return DEFAULT_PREFIXES.get(document_type, settings.GENERIC_DOCUMENT_PREFIX)


def format_document_number(prefix: str, number: int, padding: int) -> str:
    """FAC + 1 + 5 -> 'FAC-00001'"""
    return f"{prefix}-{str(number).zfill(padding)}"


class SequenceGenerator:
    """
    Generador de números de documento por (empresa, tipo de documento).

    `next_number` es la única vía que modifica `last_number` y lo hace con un
    solo upsert atómico (INSERT ... ON CONFLICT DO UPDATE ... RETURNING), nunca
    con lectura seguida de escritura. Corre dentro de la unidad de trabajo del
    llamador: si la factura no se guarda, el número tampoco se consume.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _upsert(self, session: AsyncSession):
        dialect = session.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect](DocumentSequence)
        except KeyError:
            raise RuntimeError(f"Dialecto sin soporte de upsert atómico: {dialect}")

    async def next_number(
        self,
        uow: UnitOfWork,
        tenant_id: Union[UUID, str],
        document_type: str = "invoice"
    ) -> str:
        """Asignar el siguiente número consecutivo y devolverlo formateado."""
        tenant = parse_tenant_id(tenant_id)
        doc_type = normalize_document_type(document_type)

        stmt = self._upsert(uow.session).values(
            id=uuid4(),
            tenant_id=tenant,
            document_type=doc_type,
            last_number=1,
            prefix=default_prefix(doc_type),
            padding=settings.DEFAULT_SEQUENCE_PADDING
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DocumentSequence.tenant_id, DocumentSequence.document_type],
            set_={
                "last_number": DocumentSequence.last_number + 1,
                "updated_at": func.now(),
            }
        ).returning(DocumentSequence.last_number, DocumentSequence.prefix, DocumentSequence.padding)

        result = await uow.session.execute(stmt)
        last_number, prefix, padding = result.one()

        number = format_document_number(prefix, last_number, padding)
        logger.info(f"Número generado para {doc_type} de empresa {tenant}: {number} (contador: {last_number})")
        return number

    async def _get_sequence(self, tenant: UUID, doc_type: str) -> Optional[DocumentSequence]:
        result = await self.db.execute(
            select(DocumentSequence).where(
                DocumentSequence.tenant_id == tenant,
                DocumentSequence.document_type == doc_type
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_config(self, tenant_id: Union[UUID, str], document_type: str) -> NumberingConfigOut:
        """Configuración actual, o la que se usaría si la secuencia aún no existe."""
        tenant = parse_tenant_id(tenant_id)
        doc_type = normalize_document_type(document_type)

        sequence = await self._get_sequence(tenant, doc_type)
        if sequence is None:
            return NumberingConfigOut(
                tenant_id=tenant,
                document_type=doc_type,
                prefix=default_prefix(doc_type),
                padding=settings.DEFAULT_SEQUENCE_PADDING,
                last_number=0
            )
        return NumberingConfigOut.model_validate(sequence)

    async def preview_next_number(self, tenant_id: Union[UUID, str], document_type: str) -> NextNumberPreview:
        """Calcular el próximo número sin modificar el contador."""
        config = await self.get_config(tenant_id, document_type)
        next_value = config.last_number + 1
        return NextNumberPreview(
            document_type=config.document_type,
            next_number=format_document_number(config.prefix, next_value, config.padding),
            next_sequence=next_value
        )

    async def update_config(
        self,
        tenant_id: Union[UUID, str],
        document_type: str,
        prefix: Optional[str] = None,
        padding: Optional[int] = None
    ) -> NumberingConfigOut:
        """
        Actualizar prefijo y/o relleno. El contador (`last_number`) no se toca.
        """
        tenant = parse_tenant_id(tenant_id)
        doc_type = normalize_document_type(document_type)

        changes = {}
        if prefix is not None:
            prefix = prefix.strip()
            if not prefix:
                raise InvalidArgumentError("El prefijo no puede estar vacío", field="prefix")
            changes["prefix"] = prefix
        if padding is not None:
            if padding < 1:
                raise InvalidArgumentError("El relleno debe ser mayor a 0", field="padding")
            changes["padding"] = padding
        if not changes:
            raise InvalidArgumentError("No se proporcionaron datos para actualizar")

        async with UnitOfWork(self.db) as uow:
            stmt = self._upsert(uow.session).values(
                id=uuid4(),
                tenant_id=tenant,
                document_type=doc_type,
                last_number=0,
                prefix=changes.get("prefix", default_prefix(doc_type)),
                padding=changes.get("padding", settings.DEFAULT_SEQUENCE_PADDING)
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[DocumentSequence.tenant_id, DocumentSequence.document_type],
                set_={**changes, "updated_at": func.now()}
            )
            await uow.session.execute(stmt)

        logger.info(f"Configuración de numeración actualizada para {doc_type} de empresa {tenant}: {changes}")
        sequence = await self._get_sequence(tenant, doc_type)
        # Lectura fuera de la unidad de trabajo; se cierra para no retener la transacción
        await self.db.commit()
        return NumberingConfigOut.model_validate(sequence)
