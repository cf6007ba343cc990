"""Main FastAPI application"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import config, logger
from app.core.container import ServiceContainer
from app.core.errors import (
    AuthError,
    NotFoundError,
    StoreUnavailableError,
    ToolGatewayError,
    ValidationError,
)
from app.middleware.auth import HybridAuthMiddleware
from app.schemas.common import ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Tool Gateway...")
    logger.info(f"Environment: {config.environment}")
    logger.info(f"Version: {config.version}")

    try:
        from app.models import init_db

        await init_db()
        logger.info("✓ Database initialized")
    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        raise

    yield

    logger.info("Shutting down Tool Gateway...")
    from app.models import close_db

    await close_db()


def _error_response(status_code: int, error: str, detail=None) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return _error_response(401, "Unauthorized")

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error_response(400, exc.message, exc.details or None)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.debug(f"Invalid request to {request.url.path}: {exc.errors()}")
        return _error_response(400, "Invalid request", jsonable_errors(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error_response(404, exc.message)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error(f"Store unavailable on {request.url.path}: {exc.message}")
        return _error_response(500, "Internal server error")

    @app.exception_handler(ToolGatewayError)
    async def gateway_error_handler(request: Request, exc: ToolGatewayError):
        logger.error(f"Unhandled {exc.error_code} on {request.url.path}: {exc.message}")
        return _error_response(500, "Internal server error")


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Service container (a fresh one with built-in tools by default)
    """
    app = FastAPI(
        title="Tool Gateway",
        description="Tool dispatch and delegate execution service",
        version=config.version,
        docs_url="/docs" if config.is_development else None,
        redoc_url="/redoc" if config.is_development else None,
        lifespan=lifespan,
    )
    app.state.container = container or ServiceContainer()

    app.add_middleware(
        HybridAuthMiddleware,
        jwt_secret=config.jwt_secret,
        jwt_algorithm=config.jwt_algorithm,
        internal_api_key=config.internal_api_key,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if config.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return JSONResponse(
            content={
                "status": "healthy",
                "version": config.version,
                "environment": config.environment,
                "stats": app.state.container.get_stats(),
            }
        )

    from app.api.v1 import delegates, tools

    app.include_router(tools.router, prefix="/tools", tags=["Tools"])
    app.include_router(delegates.router, tags=["Delegates"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=config.port,
        reload=config.is_development,
        log_level=config.log_level.lower(),
    )
