"""
Request context dependencies.

Authentication happens upstream; the gateway forwards the caller's user id
and tenant id as headers. Every service is constructed with the tenant id
resolved here, never with an implicit default.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from headoffice.core.config import settings
from headoffice.database import get_db
from headoffice.models.tenant import Tenant
from headoffice.models.user import User

logger = logging.getLogger(__name__)


def _parse_id(value: Optional[str], header: str) -> int:
    if not value:
        logger.warning(f"Authentication failed: missing {header} header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Authentication failed: malformed {header} header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )


def get_current_tenant(
    x_tenant_id: Optional[str] = Header(None, alias=settings.tenant_id_header),
    db: Session = Depends(get_db)
) -> Tenant:
    tenant_id = _parse_id(x_tenant_id, settings.tenant_id_header)
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if tenant is None or not tenant.is_active:
        logger.warning(f"Authentication failed: tenant {tenant_id} unknown or inactive")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown tenant",
        )
    return tenant


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias=settings.user_id_header),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolves the acting user within the current tenant.
    """
    user_id = _parse_id(x_user_id, settings.user_id_header)
    user = db.query(User).filter(User.id == user_id, User.tenant_id == tenant.id).first()

    if user is None:
        logger.warning(f"Authentication failed: user {user_id} not found in tenant {tenant.id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if not user.is_active:
        logger.warning(f"Authentication failed: user {user_id} is inactive")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive"
        )
    return user


def get_dispatcher():
    """
    Event dispatcher handed to services. None lets each service build the
    default notification dispatcher on its own session.
    """
    return None
