import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict

import bcrypt
import jwt

from app.core.settings import settings
from app.libs.formats.datetime import now_tzinfo, ttl_delta


class SecurityService:
    def __init__(self):
        self.access_secret = settings.JWT_ACCESS_SECRET
        self.refresh_secret = settings.JWT_REFRESH_SECRET
        self.algorithm = settings.ALGORITHM
        self.access_ttl: timedelta = ttl_delta(settings.JWT_ACCESS_TTL)
        self.refresh_ttl: timedelta = ttl_delta(settings.JWT_REFRESH_TTL)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    # 🔐 JWT
    def _encode(self, payload: Dict[str, Any], secret: str, ttl: timedelta) -> str:
        issued = now_tzinfo()
        body = {**payload, "iat": issued, "exp": issued + ttl}
        return str(jwt.encode(body, secret, algorithm=self.algorithm))

    def _decode(self, token: str, secret: str, token_type: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise ValueError("Token expired")
        except jwt.InvalidTokenError:
            raise ValueError("Invalid token")
        if payload.get("type") != token_type:
            raise ValueError("Invalid token")
        return payload

    async def create_access_token(self, sub: int | str, sid: int, email: str, role: str) -> str:
        return self._encode(
            {"sub": str(sub), "sid": sid, "email": email, "role": role, "type": "access"},
            self.access_secret,
            self.access_ttl,
        )

    async def create_refresh_token(self, sub: int | str, sid: int, jti: str) -> str:
        return self._encode(
            {"sub": str(sub), "sid": sid, "jti": jti, "type": "refresh"},
            self.refresh_secret,
            self.refresh_ttl,
        )

    async def decode_access_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.access_secret, "access")

    async def decode_refresh_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.refresh_secret, "refresh")

    def refresh_expiry(self, start: datetime) -> datetime:
        return start + self.refresh_ttl

    # 🔑 PASSWORD
    @staticmethod
    async def hash_password(plain: str) -> str:
        salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    async def verify_password(plain: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    # #️⃣ OPAQUE TOKENS
    @staticmethod
    def hash_token(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def token_matches(token: str, token_hash: str | None) -> bool:
        if not token_hash:
            return False
        return hmac.compare_digest(SecurityService.hash_token(token), token_hash)

    @staticmethod
    def random_token(nbytes: int = 32) -> str:
        return secrets.token_hex(nbytes)

    @staticmethod
    def new_jti() -> str:
        return str(uuid.uuid4())
