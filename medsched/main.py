"""
medsched API.

Run with:
    uvicorn medsched.main:app --reload

Or:
    python -m medsched.main
"""

import time
import asyncio
import logging
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from medsched.core.config import settings
from medsched.core.logging import setup_logging, request_id_ctx
from medsched.core.errors import InvalidFormat, InvalidIdentifier, NotFound
from medsched.core.db import init_models
from medsched.core.redis import redis_manager
from medsched.api.router import api_router
from medsched.modules.basket.service import BasketRegistry

logger = logging.getLogger(__name__)

def create_app(baskets: BasketRegistry | None = None, manage_resources: bool = True) -> FastAPI:
    """
    Builds the API. ``manage_resources=False`` skips schema creation and Redis
    connection on startup, for hosts (and tests) that set those up themselves.
    """
    setup_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.state.baskets = baskets or BasketRegistry()

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("x-request-id", "-")
        token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000
        logger.info(
            f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {process_time:.2f}ms"
        )
        return response

    @app.exception_handler(InvalidFormat)
    @app.exception_handler(InvalidIdentifier)
    async def bad_input_handler(request: Request, exc: Exception):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"message": "An internal server error occurred."},
        )

    @app.on_event("startup")
    async def on_startup():
        if manage_resources:
            if settings.PERSISTENCE_PROVIDER == "sql":
                await init_models()
            if settings.PERSISTENCE_PROVIDER == "redis" or settings.EVENT_BUS_PROVIDER == "redis":
                await redis_manager.connect()
        app.state.basket_ticker = asyncio.create_task(app.state.baskets.run_ticker())

    @app.on_event("shutdown")
    async def on_shutdown():
        task = getattr(app.state, "basket_ticker", None)
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        # pending holds stay in-progress; their timers die with the process
        app.state.baskets.close()
        if manage_resources:
            await redis_manager.close()

    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app

app = create_app()

if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run("medsched.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
