"""
Validadores de entrada compartidos por los servicios
"""
import re
from typing import Any
from uuid import UUID

from billing.common.exceptions import InvalidArgumentError

DOCUMENT_TYPE_PATTERN = re.compile(r'^[a-z][a-z0-9_]{0,29}$')


def parse_tenant_id(tenant_id: Any) -> UUID:
    """
    Normaliza el identificador de empresa (tenant).
    Falla con InvalidArgument antes de tocar el almacenamiento.
    """
    if isinstance(tenant_id, UUID):
        return tenant_id
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise InvalidArgumentError("El identificador de empresa es requerido", field="tenant_id")
    try:
        return UUID(tenant_id.strip())
    except ValueError:
        raise InvalidArgumentError(
            f"Identificador de empresa inválido: {tenant_id!r}",
            field="tenant_id"
        )


def normalize_document_type(document_type: Any) -> str:
    """
    Valida el formato del tipo de documento.
    Tipos desconocidos pero bien formados se aceptan (usan prefijo genérico).
    """
    if hasattr(document_type, "value"):
        document_type = document_type.value
    if not isinstance(document_type, str):
        raise InvalidArgumentError("El tipo de documento es requerido", field="document_type")
    cleaned = document_type.strip().lower()
    if not DOCUMENT_TYPE_PATTERN.match(cleaned):
        raise InvalidArgumentError(
            f"Tipo de documento inválido: {document_type!r}",
            field="document_type"
        )
    return cleaned
