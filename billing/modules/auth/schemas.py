from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class AuthContext(BaseModel):
    """Identidad resuelta desde el token: usuario, empresa activa y rol."""
    user_id: UUID
    tenant_id: Optional[UUID] = None
    user_role: Optional[str] = None
