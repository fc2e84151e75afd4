import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from bookstore import config
from bookstore.database import collection, get_document_by_id, serialize, to_object_id
from bookstore.errors import AuthenticationError

# Use pbkdf2_sha256 to avoid bcrypt backend issues in some environments
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

PRIVATE_USER_FIELDS = ("password_hash", "refresh_sessions")


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def _as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes that are already UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_access_token(user_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "role": role, "type": "access", "exp": expire}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def create_refresh_token(user_id: str, expires_delta: Optional[timedelta] = None):
    """Return the encoded refresh token and the session entry that backs it"""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS))
    jti = uuid.uuid4().hex
    to_encode = {"sub": user_id, "jti": jti, "type": "refresh", "exp": expire}
    token = jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)
    return token, {"jti": jti, "expires_at": expire.replace(tzinfo=None)}


def decode_token(token: str, expected_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    if payload.get("type") != expected_type or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")
    return payload


# ------------------------- Sessions ---------------------------
def _utc_naive() -> datetime:
    # BSON dates are naive UTC; session expiry is stored and queried the same way
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _live_sessions(user: dict) -> list:
    current = datetime.now(timezone.utc)
    return [s for s in user.get("refresh_sessions", []) if _as_utc(s["expires_at"]) > current]


def add_session(user_id: Any, session: dict):
    """Register a refresh session, dropping expired ones and the oldest beyond the cap"""
    users = collection("user")
    user_id = to_object_id(user_id)
    users.update_one({"_id": user_id}, {"$pull": {"refresh_sessions": {"expires_at": {"$lte": _utc_naive()}}}})
    users.update_one(
        {"_id": user_id},
        {"$push": {"refresh_sessions": {"$each": [session], "$slice": -config.MAX_SESSIONS}}},
    )


def has_session(user: dict, jti: str) -> bool:
    return any(s["jti"] == jti for s in _live_sessions(user))


def claim_session(user_id: str, jti: str) -> bool:
    """Remove a live session in one conditional update; False if it was already used, revoked or expired"""
    result = collection("user").update_one(
        {
            "_id": to_object_id(user_id),
            "refresh_sessions": {"$elemMatch": {"jti": jti, "expires_at": {"$gt": _utc_naive()}}},
        },
        {"$pull": {"refresh_sessions": {"jti": jti}}},
    )
    return result.modified_count > 0


def revoke_session(user_id: str, jti: str):
    collection("user").update_one({"_id": to_object_id(user_id)}, {"$pull": {"refresh_sessions": {"jti": jti}}})


def revoke_all_sessions(user_id: str):
    collection("user").update_one({"_id": to_object_id(user_id)}, {"$set": {"refresh_sessions": []}})


def issue_tokens(user: dict) -> Dict[str, str]:
    user_id = str(user["_id"])
    refresh_token, session = create_refresh_token(user_id)
    add_session(user_id, session)
    return {
        "access_token": create_access_token(user_id, user.get("role", "user")),
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


def public_user(user: dict) -> dict:
    doc = serialize(user)
    for field in PRIVATE_USER_FIELDS:
        doc.pop(field, None)
    return doc


# ------------------------- Dependencies -----------------------
async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token, "access")
    except AuthenticationError:
        raise credentials_exception
    user = get_document_by_id("user", payload["sub"])
    if user is None:
        raise credentials_exception
    if user.get("status") == "suspended":
        raise HTTPException(status_code=403, detail="User is suspended")
    return public_user(user)


async def get_current_admin(current=Depends(get_current_user)):
    if current.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admins only")
    return current
