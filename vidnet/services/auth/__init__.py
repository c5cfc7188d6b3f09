import uuid
from datetime import datetime, timedelta, timezone

from bson import ObjectId
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from jose import jwt, JWTError
from pydantic import BaseModel

from vidnet.models.account import Account, PRIVATE_FIELDS
from vidnet.utils.base import TokenType
from vidnet.utils.config import Settings
from vidnet.utils.errors import Unauthorized


ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/accounts/login", auto_error=False)


class TokenPair(BaseModel):
    """Pair of JWT tokens used by the client for auth and refresh."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def verify_password(plain: str, hashed: str) -> bool:
    """Verify plaintext password against a bcrypt hash (constant time)."""
    return pwd_context.verify(plain, hashed)


def hash_password(plain: str) -> str:
    """Hash a plaintext password using bcrypt with a fresh salt."""
    return pwd_context.hash(plain)


class TokenIssuer:
    """Signs and verifies access/refresh JWTs for account identities."""

    def __init__(self, settings: Settings):
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_ttl = timedelta(minutes=settings.access_token_expires_minutes)
        self.refresh_ttl = timedelta(days=settings.refresh_token_expires_days)

    def create_token(self, subject: str, token_type: TokenType, expires_delta: timedelta) -> str:
        """Create a signed JWT with subject, type, expiration and a unique id."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
            "typ": token_type.value,
            # Two tokens minted within the same second must still differ
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def issue_pair(self, account_id: ObjectId | str) -> TokenPair:
        """Create access and refresh token pair for an account."""
        subject = str(account_id)
        return TokenPair(
            access_token=self.create_token(subject, TokenType.ACCESS, self.access_ttl),
            refresh_token=self.create_token(subject, TokenType.REFRESH, self.refresh_ttl),
        )

    def decode(self, token: str, expected_type: TokenType) -> dict:
        """Verify signature, expiry and type. Raises JWTError on any failure."""
        payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        subject = payload.get("sub")
        if payload.get("typ") != expected_type.value or not subject or not ObjectId.is_valid(subject):
            raise JWTError("Unexpected token claims")
        return payload

    @property
    def access_max_age(self) -> int:
        return int(self.access_ttl.total_seconds())

    @property
    def refresh_max_age(self) -> int:
        return int(self.refresh_ttl.total_seconds())


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer(settings)


def get_current_account(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Account:
    """Auth dependency that validates an access token and returns the account.

    The `accessToken` cookie is tried first, then the `Authorization: Bearer`
    header, so a stale cookie does not shadow a valid header. Any
    verification problem is reported the same way so callers cannot tell
    expiry from tampering.
    """
    candidates = [token for token in (request.cookies.get(ACCESS_COOKIE), bearer) if token]
    if not candidates:
        raise Unauthorized("Unauthorized request")

    payload = None
    for token in candidates:
        try:
            payload = issuer.decode(token, TokenType.ACCESS)
            break
        except JWTError:
            continue
    if payload is None:
        raise Unauthorized("Invalid access token")

    account = Account.objects(id=ObjectId(payload["sub"])).exclude(*PRIVATE_FIELDS).first()
    if not account:
        raise Unauthorized("Invalid access token")
    request.state.account_id = account.id
    return account
