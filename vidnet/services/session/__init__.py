"""Login, logout, password change and refresh-token rotation.

Each account has exactly one refresh-token slot. Login and refresh overwrite
it, logout clears it, and a refresh only succeeds when the presented token is
the value currently in the slot. A token that was already rotated away is
therefore rejected, which is how replay of a stolen token gets noticed.
"""
from __future__ import annotations

import hmac
import logging

from bson import ObjectId
from fastapi import Depends
from jose import JWTError
from mongoengine import Q
from mongoengine.errors import NotUniqueError, ValidationError as DocumentError

from vidnet.models.account import Account, normalize_email, normalize_username
from vidnet.models.base import utcnow
from vidnet.services.auth import TokenIssuer, TokenPair, get_settings, hash_password, verify_password
from vidnet.utils.base import TokenType
from vidnet.utils.config import Settings
from vidnet.utils.errors import Conflict, NotFound, Unauthorized, ValidationError


logger = logging.getLogger(__name__)


class LoginResult(TokenPair):
    account: dict


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _lookup_field(identifier: str) -> str:
    # Usernames never contain "@", so the identifier names exactly one field
    return "email" if "@" in identifier else "username"


class SessionManager:
    def __init__(self, settings: Settings, issuer: TokenIssuer | None = None):
        self.settings = settings
        self.issuer = issuer or TokenIssuer(settings)

    def register(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
        avatar: str,
        cover_image: str | None = None,
    ) -> Account:
        """Create an account. Username and email must be unused."""
        if any(_blank(v) for v in (full_name, email, username, password)):
            raise ValidationError("All fields are required")
        if _blank(avatar):
            raise ValidationError("Avatar is required")

        username = normalize_username(username)
        email = normalize_email(email)
        if "@" in username:
            raise ValidationError("Username cannot contain '@'")

        existing = Account.objects(Q(username=username) | Q(email=email)).only("username", "email").first()
        if existing:
            if existing.username == username:
                raise Conflict("Username already taken")
            raise Conflict("Email already taken")

        account = Account(
            username=username,
            email=email,
            full_name=full_name.strip(),
            password=hash_password(password),
            avatar=avatar,
            cover_image=cover_image or "",
        )
        try:
            account.save()
        except DocumentError as err:
            raise ValidationError("Invalid account details", errors=[str(err)])
        except NotUniqueError:
            # Lost a race against a concurrent registration
            raise Conflict("Username or email already taken")
        logger.info("Registered account %s (%s)", account.id, username)
        return account

    def login(self, identifier: str, secret: str) -> LoginResult:
        """Authenticate by username or email and open a new session.

        Any previous session of the account stops being refreshable.
        """
        if _blank(identifier):
            raise ValidationError("Username or email is required")
        if _blank(secret):
            raise ValidationError("Password is required")

        ident = identifier.strip().lower()
        account: Account | None = Account.objects(**{_lookup_field(ident): ident}).first()
        if not account:
            raise NotFound("Account does not exist")
        if not account.password or not verify_password(secret, account.password):
            raise Unauthorized("Invalid credentials")

        tokens = self.issuer.issue_pair(account.id)
        Account.objects(id=account.id).update_one(set__refresh_token=tokens.refresh_token, set__updated_at=utcnow())
        logger.info("Account %s logged in", account.id)
        return LoginResult(account=account.to_output(), **tokens.model_dump())

    def refresh(self, presented: str | None) -> TokenPair:
        """Exchange the current refresh token for a new pair (single use)."""
        if not presented:
            raise Unauthorized("Unauthorized request")
        try:
            payload = self.issuer.decode(presented, TokenType.REFRESH)
        except JWTError:
            raise Unauthorized("Invalid refresh token")

        account_id = ObjectId(payload["sub"])
        stored: Account | None = Account.objects(id=account_id).only("refresh_token").first()
        if not stored:
            raise Unauthorized("Invalid refresh token")
        current = stored.refresh_token
        if not current or not hmac.compare_digest(current, presented):
            logger.warning("Rejected expired or reused refresh token for account %s", account_id)
            raise Unauthorized("Refresh token is expired or reused")

        tokens = self.issuer.issue_pair(account_id)
        # Compare-and-swap: only one of several concurrent refreshes with the same token wins
        updated = Account.objects(id=account_id, refresh_token=presented).update_one(
            set__refresh_token=tokens.refresh_token,
            set__updated_at=utcnow(),
        )
        if updated != 1:
            logger.warning("Concurrent refresh lost rotation race for account %s", account_id)
            raise Unauthorized("Refresh token is expired or reused")
        logger.info("Rotated refresh token for account %s", account_id)
        return tokens

    def logout(self, account_id: ObjectId) -> None:
        Account.objects(id=account_id).update_one(unset__refresh_token=True, set__updated_at=utcnow())
        logger.info("Account %s logged out", account_id)

    def change_password(self, account_id: ObjectId, old_secret: str, new_secret: str) -> None:
        """Replace the password hash. Open sessions stay valid."""
        if _blank(old_secret) or _blank(new_secret):
            raise ValidationError("Old and new password are required")
        stored: Account | None = Account.objects(id=account_id).only("password").first()
        if not stored:
            raise NotFound("Account does not exist")
        if not stored.password or not verify_password(old_secret, stored.password):
            raise Unauthorized("Invalid old password")
        Account.objects(id=account_id).update_one(set__password=hash_password(new_secret), set__updated_at=utcnow())
        logger.info("Password changed for account %s", account_id)


def get_session_manager(settings: Settings = Depends(get_settings)) -> SessionManager:
    return SessionManager(settings)
