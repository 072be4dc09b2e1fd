from fastapi import APIRouter, Depends

from billing.dependencies.dbDependencies import async_db_dependency
from billing.modules.auth.dependencies import AuthDependencies
from billing.modules.numbering.service import SequenceGenerator
from billing.modules.numbering.schemas import NumberingConfigUpdate, NumberingConfigOut, NextNumberPreview

router = APIRouter(prefix="/document-numbering", tags=["Document Numbering"])


@router.get("/{document_type}", response_model=NumberingConfigOut)
async def get_numbering_config(
    document_type: str,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_any_role())
):
    """
    Obtener la configuración de numeración de un tipo de documento
    """
    return await SequenceGenerator(db).get_config(auth_context.tenant_id, document_type)


@router.put("/{document_type}", response_model=NumberingConfigOut)
async def update_numbering_config(
    document_type: str,
    config: NumberingConfigUpdate,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    """
    Actualizar prefijo y/o relleno de la numeración

    El contador actual se conserva; solo cambia el formato de los próximos números.
    """
    return await SequenceGenerator(db).update_config(
        auth_context.tenant_id, document_type, prefix=config.prefix, padding=config.padding
    )


@router.get("/{document_type}/preview", response_model=NextNumberPreview)
async def preview_next_document_number(
    document_type: str,
    db: async_db_dependency,
    auth_context = Depends(AuthDependencies.require_any_role())
):
    """
    Vista previa del siguiente número. No incrementa el contador real.
    """
    return await SequenceGenerator(db).preview_next_number(auth_context.tenant_id, document_type)
