from typing import Annotated, Any, Callable, Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from Auth.security import decode_token
from Auth.users import is_active, public
from Store.database import get_store
from Store.schema import USERS_TABLE
from Store.table import Store

# ---------------------------------------------------------------------------
# 1. OAuth2 dependency: pull the Bearer token out of the Authorization header
# ---------------------------------------------------------------------------
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ---------------------------------------------------------------------------
# 2. Current user from the JWT
# ---------------------------------------------------------------------------
def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    """
    Decodes the JWT and loads the user row it points to (hash removed).
    401 when the token is invalid or the user is gone / deactivated.
    """
    try:
        payload = decode_token(token)  # {"sub": "USR...", "role": "admin", ...}
    except JWTError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    users = store.table(USERS_TABLE)
    found = users.find("user_id", payload.get("sub")) if users is not None else None
    if found is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not is_active(found.record.get("active")):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Account is inactive")
    return public(found.record)


# ---------------------------------------------------------------------------
# 3. Role-based dependency factory
# ---------------------------------------------------------------------------
def role_required(*allowed_roles: str) -> Callable:  # e.g. ("admin", "staff")
    """
    Use as Depends(role_required("admin", ...)).
    Returns the current user when their role is allowed, otherwise 403.
    """

    def _wrapper(
        user: Annotated[Dict[str, Any], Depends(get_current_user)],
    ) -> Dict[str, Any]:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return user

    return _wrapper
