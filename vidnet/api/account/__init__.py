from fastapi import APIRouter, Body, Depends, Request, Response
from mongoengine.errors import NotUniqueError
from pydantic import BaseModel, EmailStr

from vidnet.models.account import Account, PRIVATE_FIELDS, normalize_email
from vidnet.models.base import utcnow
from vidnet.models.video import Video, render_videos
from vidnet.services.auth import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    TokenIssuer,
    TokenPair,
    get_current_account,
    get_settings,
)
from vidnet.services.graph import GraphQueryEngine, get_graph_engine
from vidnet.services.media import MediaStorage, get_media_storage
from vidnet.services.rate_limit import limit_attempts, limit_route, reset_attempts
from vidnet.services.session import SessionManager, get_session_manager
from vidnet.utils.config import Settings
from vidnet.utils.errors import Conflict, ValidationError
from vidnet.utils.response import api_response

router = APIRouter()


def _set_session_cookies(response: Response, tokens: TokenPair, issuer: TokenIssuer, settings: Settings) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.set_cookie(ACCESS_COOKIE, tokens.access_token, max_age=issuer.access_max_age, **options)
    response.set_cookie(REFRESH_COOKIE, tokens.refresh_token, max_age=issuer.refresh_max_age, **options)


def _clear_session_cookies(response: Response, settings: Settings) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)


class RegisterBody(BaseModel):
    full_name: str
    email: EmailStr
    username: str
    password: str
    avatar: str
    cover_image: str | None = None

@router.post("/register", status_code=201)
def register(body: RegisterBody, sessions: SessionManager = Depends(get_session_manager)) -> dict:
    """PUBLIC: Create an account; avatar/cover are media host URLs."""
    account = sessions.register(
        full_name=body.full_name,
        email=body.email,
        username=body.username,
        password=body.password,
        avatar=body.avatar,
        cover_image=body.cover_image,
    )
    return api_response(account.to_output(), "Account registered successfully", 201)


class LoginBody(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str

@router.post("/login")
def login(
    body: LoginBody,
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
) -> dict:
    """PUBLIC: Log in with username or email; tokens come back as cookies and in the body."""
    identifier = body.username or body.email
    if not identifier or not identifier.strip():
        raise ValidationError("Username or email is required")

    client_host = request.client.host if request.client else "unknown"
    attempts_key = f"login:{client_host}:{identifier.strip().lower()}"
    limit_attempts(attempts_key, settings.login_attempt_limit, settings.login_attempt_window_seconds)

    result = sessions.login(identifier, body.password)
    reset_attempts(attempts_key)
    _set_session_cookies(response, result, sessions.issuer, settings)
    return api_response(result.model_dump(), "Logged in successfully")


@router.post("/logout")
def logout(
    response: Response,
    current_account: Account = Depends(get_current_account),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
) -> dict:
    """PROTECTED: End the account's session."""
    sessions.logout(current_account.id)
    _clear_session_cookies(response, settings)
    return api_response({}, "Logged out successfully")


class RefreshBody(BaseModel):
    refresh_token: str | None = None

@router.post("/refresh-token")
def refresh_token(
    request: Request,
    response: Response,
    body: RefreshBody | None = Body(default=None),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
) -> dict:
    """PUBLIC: Rotate the refresh token (cookie first, then body)."""
    presented = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    tokens = sessions.refresh(presented)
    _set_session_cookies(response, tokens, sessions.issuer, settings)
    return api_response(tokens.model_dump(), "Access token refreshed")


class ChangePasswordBody(BaseModel):
    old_password: str
    new_password: str

@router.patch(
    "/change-password",
    dependencies=[Depends(limit_route(lambda s: s.change_password_window_seconds))],
)
def change_password(
    body: ChangePasswordBody,
    current_account: Account = Depends(get_current_account),
    sessions: SessionManager = Depends(get_session_manager),
) -> dict:
    """PROTECTED: Change password after verifying the old one."""
    sessions.change_password(current_account.id, body.old_password, body.new_password)
    return api_response({}, "Password changed successfully")


@router.get("/me")
def get_me(current_account: Account = Depends(get_current_account)) -> dict:
    """PROTECTED: Current account profile."""
    return api_response(current_account.to_output(), "Current account fetched successfully")


class UpdateDetailsBody(BaseModel):
    full_name: str | None = None
    email: EmailStr | None = None

@router.patch("/me")
def update_details(body: UpdateDetailsBody, current_account: Account = Depends(get_current_account)) -> dict:
    """PROTECTED: Update full name and/or email."""
    updates = {}
    if body.full_name is not None and body.full_name.strip():
        updates["full_name"] = body.full_name.strip()
    if body.email is not None:
        email = normalize_email(body.email)
        if Account.objects(email=email, id__ne=current_account.id).only("id").first():
            raise Conflict("Email already taken")
        updates["email"] = email
    if not updates:
        raise ValidationError("Nothing to update")

    sets = {f"set__{field}": value for field, value in updates.items()}
    try:
        account: Account = Account.objects(id=current_account.id).exclude(*PRIVATE_FIELDS).modify(
            new=True, set__updated_at=utcnow(), **sets
        )
    except NotUniqueError:
        raise Conflict("Email already taken")
    return api_response(account.to_output(), "Account details updated successfully")


class MediaBody(BaseModel):
    url: str

def _replace_media(account: Account, field: str, url: str, media: MediaStorage) -> Account:
    if not url.strip():
        raise ValidationError("Media url is required")
    accounts = Account.objects(id=account.id).exclude(*PRIVATE_FIELDS)
    previous: Account | None = accounts.modify(**{f"set__{field}": url, "set__updated_at": utcnow()})
    old_url = getattr(previous, field) if previous else None
    if old_url and old_url != url:
        media.discard(old_url)
    return accounts.first()

@router.patch("/me/avatar")
def update_avatar(
    body: MediaBody,
    current_account: Account = Depends(get_current_account),
    media: MediaStorage = Depends(get_media_storage),
) -> dict:
    """PROTECTED: Point the avatar at a new media URL."""
    account = _replace_media(current_account, "avatar", body.url, media)
    return api_response(account.to_output(), "Avatar updated successfully")


@router.patch("/me/cover-image")
def update_cover_image(
    body: MediaBody,
    current_account: Account = Depends(get_current_account),
    media: MediaStorage = Depends(get_media_storage),
) -> dict:
    """PROTECTED: Point the cover image at a new media URL."""
    account = _replace_media(current_account, "cover_image", body.url, media)
    return api_response(account.to_output(), "Cover image updated successfully")


@router.get("/c/{username}")
def channel_profile(
    username: str,
    current_account: Account = Depends(get_current_account),
    graph: GraphQueryEngine = Depends(get_graph_engine),
) -> dict:
    """PROTECTED: Channel profile with subscriber aggregates."""
    profile = graph.channel_profile(username, current_account.id)
    return api_response(profile, "Channel profile fetched successfully")


@router.get("/watch-history")
def watch_history(current_account: Account = Depends(get_current_account)) -> dict:
    """PROTECTED: Watched videos, oldest first, with owner profiles."""
    video_ids = current_account.watch_history
    if not video_ids:
        return api_response([], "Watch history fetched successfully")

    by_id = {v.id: v for v in Video.objects(id__in=video_ids)}
    videos = [by_id[video_id] for video_id in video_ids if video_id in by_id]
    return api_response(render_videos(videos), "Watch history fetched successfully")
