from contextlib import asynccontextmanager
from typing import AsyncIterator

import certifi
from fastapi import FastAPI
from mongoengine import connect, disconnect

from vidnet.utils.config import Settings


def init_mongo(settings: Settings, **options) -> None:
    # Atlas style URIs need the CA bundle; local plain mongodb:// ones do not
    if settings.mongo_uri.startswith("mongodb+srv://") or "tls=true" in settings.mongo_uri:
        options.setdefault("tlsCAFile", certifi.where())
    connect(db=settings.mongo_db, host=settings.mongo_uri, alias="default", tz_aware=True, **options)


def close_mongo() -> None:
    disconnect(alias="default")


@asynccontextmanager
async def mongo_lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_mongo(app.state.settings)
    try:
        yield
    finally:
        close_mongo()
