import logging
import sys
from contextlib import AsyncExitStack

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vidnet.connections import mongo_lifespan, redis_lifespan
from vidnet.api.account import router as account_router
from vidnet.api.subscription import router as subscription_router
from vidnet.api.video import router as video_router
from vidnet.utils.config import Settings, settings as default_settings
from vidnet.utils.errors import register_error_handlers
from vidnet.utils.response import api_response


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)


async def combined_lifespan(app: FastAPI):
    async with AsyncExitStack() as stack:
        await stack.enter_async_context(mongo_lifespan(app))
        await stack.enter_async_context(redis_lifespan(app))

        yield


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    if settings.debug:
        logging.getLogger("vidnet").setLevel(logging.DEBUG)

    app = FastAPI(title="vidnet", version="0.1.0", lifespan=combined_lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(account_router, prefix="/api/accounts")
    app.include_router(subscription_router, prefix="/api/subscriptions")
    app.include_router(video_router, prefix="/api/videos")

    @app.get("/health")
    def health() -> dict:
        return api_response({"status": "ok"}, "Healthy")

    return app


app = create_app()
