"""
Emisión de tokens firmados con la misma clave que valida AuthDependencies.
La usan las herramientas internas y las pruebas; el login vive en otro servicio.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
import jwt

from billing.core.config import settings

SECRET_KEY = settings.APP_SECRET_STRING
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES


def _encode(data: dict, token_type: str, expires_delta: Optional[timedelta]) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": token_type})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(user_id: UUID, companies: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Token de acceso: la empresa se elige con X-Company-ID y el rol sale de
    `companies` ({tenant_id: rol}).
    """
    data = {"sub": str(user_id), "companies": {str(k): v for k, v in companies.items()}}
    return _encode(data, "access", expires_delta)


def create_context_token(user_id: UUID, tenant_id: UUID, user_role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT context token with tenant information.
    """
    data = {"sub": str(user_id), "tenant_id": str(tenant_id), "user_role": user_role}
    return _encode(data, "context", expires_delta)
