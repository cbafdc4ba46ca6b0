"""JWT token creation and decoding.

Token claims:
  - sub:          employee document id
  - roles:        department roles at issue time
  - permissions:  list of effective permission strings
  - type:         "access"
  - exp:          expiry timestamp
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from firmbook.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    employee_id: str,
    roles: list[str],
    permissions: list[str],
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": employee_id,
        "roles": roles,
        "permissions": permissions,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
