"""
Gym recommendation engine — FastAPI app factory.

Use: uvicorn server.app:app
Or:  from server import create_app; app = create_app(state)
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ServerConfig, configure_logging
from .errors import EngineError, error_body
from .routes import register_routes
from .state import AppState

logger = logging.getLogger(__name__)


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """
    Build the FastAPI app with CORS, error handling and routes.

    When no state is given it is built from the environment at startup, so
    importing this module never needs a database, Redis or API keys.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine_state = state
        if engine_state is None:
            config = ServerConfig.from_env()
            configure_logging(config.log_level)
            engine_state = AppState.from_config(config)
        app.state.engine_state = engine_state
        await engine_state.open()
        logger.info("[startup] Gym recommendation engine ready")
        try:
            yield
        finally:
            await engine_state.close()
            logger.info("[shutdown] Gym recommendation engine stopped")

    app = FastAPI(
        title="Gym Recommendation Engine API",
        description="Class recommendations, schedule-slot suggestions and semantic class search",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "[api] %s path=%s entity_id=%s message=%s",
            exc.code, request.url.path, exc.entity_id, exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=error_body(exc))

    register_routes(app)
    return app


app = create_app()
