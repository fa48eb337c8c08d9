from datetime import timedelta
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from app import config
from app.db import get_db
from app.services.calendar import utcnow
from bson import ObjectId
import logging

# ---------------------------------------------------------------------------
# Logger setup – using module namespace helps identify origin in aggregated logs
# ---------------------------------------------------------------------------
logger = logging.getLogger(__name__)

security = HTTPBearer()

ADMIN_ROLE = "admin"


def is_admin(user: dict) -> bool:
    return user.get("role") == ADMIN_ROLE


def user_id_of(user: dict) -> str:
    return str(user["_id"])


def create_access_token(user_id: str, role: str) -> str:
    """Mint an access token in the format get_current_user accepts.

    Tokens are normally issued by the auth service; this exists for
    tooling and tests.
    """
    expire = utcnow() + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": user_id, "role": role, "type": "access", "exp": expire}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(credentials.credentials, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: str = payload.get("sub")
        token_type: str = payload.get("type")

        logger.debug("Validating token for subject: %s", user_id)

        if user_id is None or token_type != "access":
            raise credentials_exception

    except JWTError:
        raise credentials_exception

    db = get_db()
    user = await db["users"].find_one({"_id": user_id})

    # Users created through the API carry ObjectId keys
    if user is None and ObjectId.is_valid(user_id):
        user = await db["users"].find_one({"_id": ObjectId(user_id)})

    if user is None:
        raise credentials_exception

    if not user.get("isActive", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return user


def require_admin(current_user: dict = Depends(get_current_user)):
    if not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required."
        )
    return current_user
