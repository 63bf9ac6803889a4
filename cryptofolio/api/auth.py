"""Authentication endpoints."""
import sqlite3
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from cryptofolio.core.security import hash_password, verify_password, create_access_token
from cryptofolio.core.config import get_settings
from cryptofolio.db.connect import get_conn
from cryptofolio.db.repo.tracked_coins_repo import TrackedCoinsRepo
from cryptofolio.services.coin_catalog import default_coin_pairs
from cryptofolio.core.logging import get_logger
from cryptofolio.core.time import now_iso
from cryptofolio.core.ids import new_id

logger = get_logger(__name__)

router = APIRouter()


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600  # seconds


def _issue_token(user_id: str, email: str) -> TokenResponse:
    settings = get_settings()
    token = create_access_token({
        "user_id": user_id,
        "email": email,
        "sub": user_id  # Standard JWT subject claim
    })
    return TokenResponse(access_token=token, expires_in=settings.jwt_exp_minutes * 60)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(body: RegisterRequest):
    """Create an account and return a token for it."""
    email = body.email.strip().lower()
    user_id = new_id("u_")

    try:
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO users (user_id, email, password_hash, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, email, hash_password(body.password), now_iso())
            )
            conn.commit()
    except sqlite3.IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists"
        )

    logger.info(f"Registered user {user_id}")
    return _issue_token(user_id, email)


@router.post("/login", response_model=TokenResponse)
async def login(login_req: LoginRequest):
    """Login and get JWT token.

    The first successful login seeds the default tracked coins.
    """
    settings = get_settings()
    email = login_req.email.strip().lower()

    with get_conn() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT user_id, email, password_hash, last_login_at FROM users WHERE email = ?",
            (email,)
        )
        user = cursor.fetchone()

        if not user or not verify_password(login_req.password, user["password_hash"]):
            logger.warning("Login failed", extra={"event": "auth.failure"})
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )

        first_login = user["last_login_at"] is None
        cursor.execute(
            "UPDATE users SET last_login_at = ? WHERE user_id = ?",
            (now_iso(), user["user_id"])
        )
        conn.commit()

    if first_login:
        TrackedCoinsRepo().seed_defaults(
            user["user_id"], default_coin_pairs(settings.default_tracked_coins_list)
        )

    logger.info("Login succeeded", extra={"event": "auth.success", "owner_id": user["user_id"]})
    return _issue_token(user["user_id"], user["email"])
