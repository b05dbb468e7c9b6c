"""
User registration and login.

Passwords are stored as bcrypt hashes and a successful login returns a signed
JWT carrying the user's id, name and role.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hacktowin.auth import (
    MAX_PASSWORD_BYTES,
    TokenIssuer,
    hash_password,
    verify_password,
    verify_token,
)
from hacktowin.database import Database
from hacktowin.errors import AuthenticationError, PersistenceError, ValidationError
from hacktowin.models import User, UserRole

logger = structlog.get_logger(__name__)

ROUTE_PREFIX = "/api/auth"
# Errors on these routes are reported under "msg"
ERROR_KEY = "msg"

router = APIRouter(prefix=ROUTE_PREFIX, tags=["auth"])

DUPLICATE_EMAIL_MESSAGE = "User with this email already exists."
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials."
MISSING_FIELDS_MESSAGE = "Please enter all fields."


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    def __init__(self, database: Database, token_issuer: TokenIssuer):
        self.database = database
        self.token_issuer = token_issuer

    def register(self, name, email, password, role) -> User:
        if not name or not email or not password or not role:
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        if role not in {r.value for r in UserRole}:
            raise ValidationError("Role must be one of participant, organizer, judge.")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

        email = normalize_email(email)

        with self.database.session() as db:
            if db.query(User).filter_by(email=email).first():
                raise ValidationError(DUPLICATE_EMAIL_MESSAGE)

            user = User(
                name=name,
                email=email,
                password_hash=hash_password(password),
                role=role,
            )
            db.add(user)
            try:
                db.commit()
            except IntegrityError as exc:
                # Lost a race with a concurrent registration for the same email
                db.rollback()
                raise ValidationError(DUPLICATE_EMAIL_MESSAGE) from exc
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError("Could not save user account.") from exc

            db.refresh(user)
            logger.info("user_registered", user_id=user.id, role=role)
            return user

    def authenticate(self, email, password) -> User:
        if not email or not password:
            raise ValidationError(MISSING_FIELDS_MESSAGE)

        with self.database.session() as db:
            user = db.query(User).filter_by(email=normalize_email(email)).first()

        if user is None or not verify_password(password, user.password_hash):
            logger.info("login_rejected")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
        return user

    async def login(self, email, password) -> str:
        user = await run_in_threadpool(self.authenticate, email, password)
        token = await self.token_issuer.issue(
            {"user": {"id": user.id, "name": user.name, "role": user.role}}
        )
        logger.info("user_logged_in", user_id=user.id)
        return token


def get_account_service(request: Request) -> AccountService:
    return AccountService(request.app.state.database, request.app.state.token_issuer)


@router.post("/register", status_code=201)
def register(
    request: RegisterRequest,
    service: AccountService = Depends(get_account_service),
):
    service.register(request.name, request.email, request.password, request.role)
    return {"msg": "Account created successfully! Please log in."}


@router.post("/login")
async def login(
    request: LoginRequest,
    service: AccountService = Depends(get_account_service),
):
    token = await service.login(request.email, request.password)
    return {"token": token, "msg": "Logged in successfully!"}


@router.get("/me")
def me(claims: dict = Depends(verify_token)):
    return {"user": claims.get("user")}
