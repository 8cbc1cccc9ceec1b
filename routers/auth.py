import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

from config import Settings, get_settings
from database import create_document, get_db, parse_object_id, serialize, update_document, utcnow
from notifier import EmailNotifier, get_notifier
from schemas import User, VerificationCode
from security import create_access_token, get_current_user, hash_password, public_user, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_CODE_MINUTES = 15
MIN_PASSWORD_LENGTH = 6
PHONE_CODE_MINUTES = 5
MAX_PHONE_ATTEMPTS = 3


# ------- Request models -------
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PhoneCodeRequest(BaseModel):
    phone: str = ""


class VerifyPhoneRequest(BaseModel):
    phone: str = ""
    code: str = ""


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class ResetEmailRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: str = ""
    code: str = ""
    new_password: str = ""


# ------- Helpers -------
def _generate_code() -> str:
    return str(secrets.randbelow(900000) + 100000)


def _session(user: Dict[str, Any], settings: Settings, message: str) -> Dict[str, Any]:
    return {
        "message": message,
        "token": create_access_token(str(user["_id"]), settings),
        "user": public_user(user),
    }


# ------- Routes -------
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifier: EmailNotifier = Depends(get_notifier),
):
    if db["user"].find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        phone=payload.phone,
    )
    uid = create_document("user", user, database=db)
    created = db["user"].find_one({"_id": parse_object_id(uid)})
    notifier.send_welcome_email(created)
    return _session(created, settings, "User registered successfully")


@router.post("/login")
def login(
    payload: LoginRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db["user"].find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return _session(user, settings, "Login successful")


@router.post("/send-phone-code")
def send_phone_code(
    payload: PhoneCodeRequest,
    db: Database = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    if not payload.phone:
        raise HTTPException(status_code=400, detail="Phone number is required")
    user = db["user"].find_one({"phone": payload.phone})
    if not user:
        raise HTTPException(status_code=400, detail="User not found")

    code = _generate_code()
    verification = VerificationCode(code=code, expires_at=utcnow() + timedelta(minutes=PHONE_CODE_MINUTES))
    update_document("user", user["_id"], {"phone_verification": verification.model_dump()}, database=db)

    # no SMS gateway yet, the code goes out by email
    notifier.send_phone_verification_code(user, code, PHONE_CODE_MINUTES)
    return {"message": "Verification code sent", "expires_in": f"{PHONE_CODE_MINUTES} minutes"}


@router.post("/verify-phone-code")
def verify_phone_code(
    payload: VerifyPhoneRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not payload.phone or not payload.code:
        raise HTTPException(status_code=400, detail="Phone number and code are required")
    user = db["user"].find_one({"phone": payload.phone})
    if not user:
        raise HTTPException(status_code=400, detail="User not found")

    verification = user.get("phone_verification") or {}
    if not verification.get("code") or not verification.get("expires_at"):
        raise HTTPException(status_code=400, detail="No verification code found. Please request a new code.")
    if utcnow() > verification["expires_at"]:
        raise HTTPException(status_code=400, detail="Verification code has expired. Please request a new code.")
    if verification.get("attempts", 0) >= MAX_PHONE_ATTEMPTS:
        raise HTTPException(status_code=400, detail="Too many attempts. Please request a new code.")
    if verification["code"] != payload.code:
        db["user"].update_one({"_id": user["_id"]}, {"$inc": {"phone_verification.attempts": 1}})
        raise HTTPException(status_code=400, detail="Invalid verification code")

    update_document("user", user["_id"], {"phone_verification": None}, database=db)
    return _session(user, settings, "Login successful")


@router.get("/me")
def get_profile(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    profile = public_user(user)
    favorite_ids = [parse_object_id(pid) for pid in user.get("favorites", [])]
    profile["favorites"] = [serialize(p) for p in db["property"].find({"_id": {"$in": favorite_ids}})]
    return profile


@router.put("/me")
def update_profile(
    payload: ProfileUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    changes = {k: v for k, v in payload.model_dump().items() if v}
    updated = update_document("user", user["_id"], changes, database=db) if changes else user
    return {"message": "Profile updated successfully", "user": public_user(updated)}


@router.put("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not verify_password(payload.current_password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    update_document("user", user["_id"], {"password_hash": hash_password(payload.new_password)}, database=db)
    return {"message": "Password changed successfully"}


@router.post("/become-host")
def become_host(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    role = "admin" if user.get("role") == "admin" else "host"
    updated = update_document("user", user["_id"], {"role": role}, database=db)
    return {"message": "You are now a host!", "user": public_user(updated)}


@router.post("/send-reset-password-email")
def send_reset_password_email(
    payload: ResetEmailRequest,
    db: Database = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    user = db["user"].find_one({"email": payload.email})
    if not user:
        raise HTTPException(status_code=400, detail="User not found")

    code = _generate_code()
    reset = VerificationCode(code=code, expires_at=utcnow() + timedelta(minutes=RESET_CODE_MINUTES))
    update_document("user", user["_id"], {"reset_password": reset.model_dump()}, database=db)
    notifier.send_reset_password_email(user, code, RESET_CODE_MINUTES)
    return {"message": "Password reset code sent to your email", "expires_in": f"{RESET_CODE_MINUTES} minutes"}


@router.post("/reset-password")
def reset_password(
    payload: ResetPasswordRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not payload.email or not payload.code or not payload.new_password:
        raise HTTPException(status_code=400, detail="Email, code, and new password are required")
    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    user = db["user"].find_one({"email": payload.email})
    if not user:
        raise HTTPException(status_code=400, detail="User not found")

    reset = user.get("reset_password") or {}
    if not reset.get("code") or not reset.get("expires_at"):
        raise HTTPException(status_code=400, detail="No reset code found. Please request a new code.")
    if utcnow() > reset["expires_at"]:
        raise HTTPException(status_code=400, detail="Reset code has expired. Please request a new code.")
    if reset["code"] != payload.code:
        raise HTTPException(status_code=400, detail="Invalid reset code")

    updated = update_document(
        "user",
        user["_id"],
        {"password_hash": hash_password(payload.new_password), "reset_password": None},
        database=db,
    )
    logger.info("Password reset for user %s", user["_id"])
    return _session(updated, settings, "Password has been reset successfully")
