"""
Admin Dependencies for Authentication and Authorization
"""
import logging
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List, Optional
from dropship.database import get_db
from dropship.utils.security import decode_token
from dropship.models.admin import Admin, AdminRole

logger = logging.getLogger(__name__)

http_bearer = HTTPBearer(auto_error=False)


async def get_admin_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    """Raw bearer token; forwarded to edge functions that act on the admin's behalf"""
    auth_token = credentials.credentials if credentials and credentials.credentials else None

    # Fallback: direct header extraction
    if not auth_token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer "):
            auth_token = auth_header[7:]

    if not auth_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_token


async def get_current_admin(
    auth_token: str = Depends(get_admin_token),
    db: Session = Depends(get_db)
) -> Admin:
    """Get current authenticated admin"""
    payload = decode_token(auth_token)
    if payload is None:
        logger.warning("Admin token decode failed - invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin_id = payload.get("adminId") or payload.get("sub")
    if admin_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing admin ID",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin = db.query(Admin).filter(Admin.id == str(admin_id)).first()
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin account is inactive"
        )

    return admin


def require_role(allowed_roles: List[AdminRole]):
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/endpoint")
        async def endpoint(admin: Admin = Depends(require_role([AdminRole.SUPER_ADMIN, AdminRole.ADMIN]))):
            ...
    """
    async def role_checker(
        current_admin: Admin = Depends(get_current_admin)
    ) -> Admin:
        if current_admin.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_admin

    return role_checker


# Money movements: payouts, postpaid and wallet adjustments, orders
require_manager_or_above = require_role([AdminRole.SUPER_ADMIN, AdminRole.ADMIN, AdminRole.MANAGER])

# Any admin role, support agents included
require_support_or_above = require_role(
    [AdminRole.SUPER_ADMIN, AdminRole.ADMIN, AdminRole.MANAGER, AdminRole.SUPPORT]
)
