"""
Authenticated principal resolution for the sync API.

Identity itself is owned by the platform's auth service; this module only
decodes the bearer token it issues and enforces test-center scoping.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from exam_sync.models.user import UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

OPERATOR_ROLES = (UserRole.ADMIN, UserRole.TEST_CENTER_OWNER)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""
    id: str
    role: UserRole
    test_center_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_access_center(self, test_center_id: str) -> bool:
        return self.is_admin or (
            self.test_center_id is not None and self.test_center_id == test_center_id
        )


SYSTEM_PRINCIPAL = Principal(id="system", role=UserRole.ADMIN)


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Principal:
    """Resolve the principal from the bearer token."""
    if not request.app.state.settings.AUTH_ENABLED:
        return SYSTEM_PRINCIPAL

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = request.app.state.jwt_manager.verify_access_token(credentials.credentials)

    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token role"
        )

    return Principal(
        id=str(payload.get("sub")),
        role=role,
        test_center_id=payload.get("test_center_id")
    )


async def get_current_operator(
    principal: Principal = Depends(get_current_principal)
) -> Principal:
    """Only administrators and test-center owners may drive sync operations."""
    if principal.role not in OPERATOR_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Test center operator access required"
        )
    return principal


def ensure_center_access(principal: Principal, test_center_id: str) -> None:
    if not principal.can_access_center(test_center_id):
        logger.warning(
            f"Principal {principal.id} denied access to test center {test_center_id}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this test center is not allowed"
        )
