from __future__ import annotations
from typing import Callable

from fastapi import Depends, Request

from vidnet.connections.redis import get_redis
from vidnet.models.account import Account
from vidnet.services.auth import get_current_account, get_settings
from vidnet.utils.config import Settings
from vidnet.utils.errors import TooManyRequests


def limit_route(window: Callable[[Settings], int]):
    """Return a FastAPI dependency that rate-limits an account on a route.

    `window` picks the cooldown in seconds from the app settings. Uses a Redis
    TTL to block repeated calls by the same account to the same path within
    that window; a window of 0 turns the limit off.
    """

    def _dependency(
        request: Request,
        current_account: Account = Depends(get_current_account),
        settings: Settings = Depends(get_settings),
    ) -> None:
        seconds = window(settings)
        if seconds <= 0:
            return
        client = get_redis()
        key = f"rl:{current_account.id}:{request.url.path}"

        # If a TTL exists, the account must wait; otherwise set a new TTL.
        ttl = client.ttl(key)
        if ttl and ttl > 0:
            raise TooManyRequests(f"Rate limited. Try again in {ttl}s")
        client.setex(name=key, time=seconds, value="1")

    return _dependency


def limit_attempts(key: str, limit: int, window_seconds: int) -> None:
    """Count an attempt under `key`; fail once more than `limit` land in the window."""
    if limit <= 0 or window_seconds <= 0:
        return
    client = get_redis()
    attempts = client.incr(key)
    if attempts == 1:
        client.expire(key, window_seconds)
    if attempts > limit:
        ttl = client.ttl(key)
        raise TooManyRequests(f"Too many attempts. Try again in {max(ttl, 1)}s")


def reset_attempts(key: str) -> None:
    get_redis().delete(key)
