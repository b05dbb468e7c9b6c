from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from jose import JWTError, jwt

from hacktowin.errors import TokenError

BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class TokenIssuer:
    def __init__(self, secret: str, expires_in: timedelta, algorithm: str = "HS256"):
        self.secret = secret
        self.expires_in = expires_in
        self.algorithm = algorithm

    def _sign(self, claims: dict) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + self.expires_in}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    async def issue(self, claims: dict) -> str:
        try:
            return await run_in_threadpool(self._sign, claims)
        except JWTError as exc:
            raise TokenError("Could not issue access token.") from exc

    def decode(self, token: str) -> dict:
        return jwt.decode(token, self.secret, algorithms=[self.algorithm])


def verify_token(request: Request, authorization: Optional[str] = Header(None)) -> dict:
    try:
        if not authorization:
            raise ValueError("missing authorization header")
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("unsupported authorization scheme")
        return request.app.state.token_issuer.decode(token)
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")
