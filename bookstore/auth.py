import logging

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from bookstore.database import collection, create_document, get_document_by_id, update_document
from bookstore.errors import AuthenticationError, ConflictError, InvalidRequestError, PermissionDeniedError
from bookstore.schemas import (
    LoginRequest,
    LogoutRequest,
    PasswordChange,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    User,
)
from bookstore.security import (
    claim_session,
    decode_token,
    get_current_user,
    get_password_hash,
    has_session,
    issue_tokens,
    public_user,
    revoke_all_sessions,
    revoke_session,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_user_by_email(email: str):
    return collection("user").find_one({"email": email})


@router.post("/register", status_code=201)
def register(payload: RegisterRequest):
    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
    )
    try:
        user_id = create_document("user", user)
    except DuplicateKeyError:
        raise ConflictError("User already exists")
    doc = get_document_by_id("user", user_id)
    tokens = issue_tokens(doc)
    logger.info("Registered user %s", user_id)
    return {"message": "User registered successfully", "user": public_user(doc), **tokens}


@router.post("/login")
def login(payload: LoginRequest):
    user = get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise AuthenticationError("Invalid credentials")
    if user.get("status") == "suspended":
        raise PermissionDeniedError("User is suspended")
    tokens = issue_tokens(user)
    return {"message": "Login successful", "user": public_user(user), **tokens}


@router.post("/refresh")
def refresh(payload: RefreshRequest):
    claims = decode_token(payload.refresh_token, "refresh")
    user = get_document_by_id("user", claims["sub"])
    if user is None or not has_session(user, claims.get("jti", "")):
        raise AuthenticationError("Invalid refresh token")
    if user.get("status") == "suspended":
        raise PermissionDeniedError("User is suspended")
    if not claim_session(claims["sub"], claims["jti"]):
        raise AuthenticationError("Invalid refresh token")
    tokens = issue_tokens(user)
    return {"access_token": tokens["access_token"], "refresh_token": tokens["refresh_token"], "token_type": "bearer"}


@router.post("/logout")
def logout(payload: LogoutRequest, current=Depends(get_current_user)):
    if payload.refresh_token:
        try:
            claims = decode_token(payload.refresh_token, "refresh")
        except AuthenticationError:
            claims = None
        if claims and claims["sub"] == current["id"]:
            revoke_session(current["id"], claims["jti"])
    return {"message": "Logout successful"}


@router.get("/me")
def me(current=Depends(get_current_user)):
    return {"user": current}


@router.put("/profile")
def update_profile(payload: ProfileUpdate, current=Depends(get_current_user)):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        try:
            update_document("user", current["id"], changes)
        except DuplicateKeyError:
            raise ConflictError("Email already in use")
    return {"message": "Profile updated successfully", "user": public_user(get_document_by_id("user", current["id"]))}


@router.put("/password")
def change_password(payload: PasswordChange, current=Depends(get_current_user)):
    user = get_document_by_id("user", current["id"])
    if not verify_password(payload.current_password, user.get("password_hash", "")):
        raise InvalidRequestError("Current password is incorrect")
    update_document("user", current["id"], {"password_hash": get_password_hash(payload.new_password)})
    revoke_all_sessions(current["id"])
    logger.info("Password changed for user %s, sessions revoked", current["id"])
    return {"message": "Password changed successfully"}
