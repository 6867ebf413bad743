"""
Caller identity

Authentication happens upstream (API gateway); requests reach this service
with the verified user id and role in trusted headers.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
CUSTOMER_ROLE = "customer"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str = CUSTOMER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


async def get_current_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    """Principal from X-User-Id / X-User-Role; 401 when the id is missing"""
    if not x_user_id or not x_user_id.strip():
        logger.warning("⚠️ Request without X-User-Id header")
        raise HTTPException(status_code=401, detail="Not authenticated")

    role = (x_user_role or CUSTOMER_ROLE).strip().lower()
    return Principal(user_id=x_user_id.strip(), role=role)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        logger.warning(f"⚠️ User {principal.user_id} denied admin operation")
        raise HTTPException(status_code=403, detail="Admin access required")
    return principal


def scope_customer(principal: Principal) -> Optional[str]:
    """Customer id to filter by: None for admins (sees everything), own id otherwise"""
    return None if principal.is_admin else principal.user_id
