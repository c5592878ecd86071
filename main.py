import logging
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import auth, cart, device_websocket, devices, orders, products, service
from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import AppError, UpstreamError
from app.core.logging import configure_logging
from app.core.messages import ERROR_DATABASE, ERROR_INTERNAL_SERVER, ERROR_VALIDATION
from app.core.schemas import error_response
from app.middleware.logging import LoggingMiddleware


logger = logging.getLogger("app.main")

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT.lower() != "production":
        init_db()
        logger.info("Database tables ensured")
    logger.info("Server starting: environment=%s", settings.ENVIRONMENT)
    yield
    logger.info("Server shutting down")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(error_response(exc.message, exc.errors)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_response(ERROR_VALIDATION, errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=UpstreamError.status_code,
            content=error_response(ERROR_DATABASE),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        body = error_response(ERROR_INTERNAL_SERVER)
        if settings.ENVIRONMENT.lower() == "development":
            body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware - must be added before other middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(
            {
                settings.FRONTEND_URL,
                "http://localhost:5173",
                "http://localhost:3000",
                "http://127.0.0.1:5173",
                "http://127.0.0.1:3000",
            }
        ),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    # Middleware
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    # API routes
    prefix = settings.API_PREFIX
    app.include_router(auth.router, prefix=prefix)
    app.include_router(products.router, prefix=prefix)
    app.include_router(devices.router, prefix=prefix)
    app.include_router(device_websocket.router, prefix=prefix)
    app.include_router(cart.router, prefix=prefix)
    app.include_router(orders.router, prefix=prefix)
    app.include_router(service.router, prefix=prefix)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - STARTED_AT, 3),
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=settings.DEBUG,
    )
