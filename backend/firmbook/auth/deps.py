"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user         → decode JWT, load the Employee document
  token_permissions        → permission claims of the current token
  require_permission(...)  → restrict to specific granular permissions
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from firmbook.auth.jwt import decode_token
from firmbook.auth.permissions import has_permission
from firmbook.documents import get_document_store
from firmbook.documents.repository import get_document
from firmbook.documents.store import DocumentStore
from firmbook.middleware.exceptions import PermissionDeniedError
from firmbook.schemas.documents import Employee

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    store: DocumentStore = Depends(get_document_store),
) -> Employee:
    """Decode the JWT and load the employee it was issued to.

    The decoded payload is kept on the returned object as
    ``_token_payload`` so permission checks don't decode twice.
    """
    payload = decode_token(token) if token else {}
    employee_id: str | None = payload.get("sub")
    if not employee_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    employee = await get_document(store, Employee, employee_id)
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Employee not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    employee._token_payload = payload
    return employee


def token_permissions(user: Employee) -> list[str]:
    payload: dict = user._token_payload
    return payload.get("permissions", [])


# ── Permission-based access control ─────────────────────────

def require_permission(*perms: str):
    """Dependency factory: restrict to employees holding ALL listed permissions.

    Usage:
        @router.post("/submit")
        async def submit(user: Employee = Depends(require_permission("billing.submit"))):
            ...
    """
    async def _check(user: Employee = Depends(get_current_user)) -> Employee:
        user_perms = token_permissions(user)
        missing = [p for p in perms if not has_permission(user_perms, p)]
        if missing:
            raise PermissionDeniedError(
                f"Access denied: missing permission {', '.join(missing)}"
            )
        return user

    return _check
