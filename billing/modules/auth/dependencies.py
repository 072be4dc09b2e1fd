"""
Dependencias de autenticación para FastAPI.

La emisión de tokens vive en el servicio de autenticación; aquí solo se
decodifica el token y se resuelve el contexto (usuario, empresa, rol).
"""
from uuid import UUID
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from billing.modules.auth.schemas import AuthContext
from billing.core.config import settings

# Security scheme
security = HTTPBearer()

ALL_ROLES = ["owner", "admin", "seller", "accountant", "viewer"]


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_auth_context(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security)
    ) -> AuthContext:
        """
        Obtener contexto de autenticación completo con tenant.
        Requiere X-Company-ID header o token de contexto.
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )

        try:
            payload = jwt.decode(
                credentials.credentials,
                settings.APP_SECRET_STRING,
                algorithms=[settings.ALGORITHM]
            )
            user_id = UUID(payload.get("sub"))
        except (jwt.PyJWTError, TypeError, ValueError):
            raise credentials_exception

        token_type = payload.get("type", "access")
        tenant_id = None
        user_role = None

        if token_type == "context":
            # Token de contexto ya tiene tenant_id
            tenant_id = payload.get("tenant_id")
            user_role = payload.get("user_role")
        else:
            # Token de acceso: la empresa llega por header, el rol por los claims
            header_tenant = getattr(request.state, 'tenant_id', None)
            if header_tenant:
                tenant_id = str(header_tenant)
                user_role = (payload.get("companies") or {}).get(tenant_id)
                if user_role is None:
                    raise HTTPException(
                        status_code=status.HTTP_403_FORBIDDEN,
                        detail="No tienes acceso a esta empresa"
                    )

        try:
            return AuthContext(
                user_id=user_id,
                tenant_id=UUID(str(tenant_id)) if tenant_id else None,
                user_role=user_role
            )
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="ID de empresa inválido"
            )

    @staticmethod
    def require_role(allowed_roles: list[str]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if not auth_context.tenant_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Se requiere seleccionar una empresa"
                )

            if auth_context.user_role not in allowed_roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Se requiere uno de estos roles: {', '.join(allowed_roles)}"
                )

            return auth_context
        return role_checker

    @staticmethod
    def require_any_role():
        """Dependencia que requiere cualquier rol activo en una empresa."""
        return AuthDependencies.require_role(ALL_ROLES)


get_auth_context = AuthDependencies.get_auth_context
