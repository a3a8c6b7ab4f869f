"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from config import Settings, load_settings
from database import build_stores
from errors import TicketingError
from logging_system import AuditLog, configure_logging
from middleware_metrics import MetricsMiddleware
from reconciliation import TicketReconciler
from routers import events, tickets
from web3_client import build_chain_client

# Monitoring imports
from sentry_config import init_sentry
from monitoring import get_metrics

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Adapters are built once here and handed to handlers through app.state
    settings: Settings = app.state.settings
    configure_logging(settings.log_dir)
    ticket_store, event_store, db = build_stores(settings)
    chain = build_chain_client(settings)
    app.state.event_store = event_store
    app.state.reconciler = TicketReconciler(chain, ticket_store, AuditLog(db), events=event_store)
    logger.info(f"Ticketing backend started ({settings.environment}, store={settings.store_backend})")
    yield


async def ticketing_error_handler(request: Request, exc: TicketingError):
    if exc.status_code >= 500 or exc.status_code == 207:
        logger.error(f"{request.method} {request.url.path} -> {exc.kind}: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.kind}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies never reach the chain
    return JSONResponse(
        status_code=400,
        content={
            "error": "InvalidRequest",
            "detail": "Request validation failed",
            "chainOutcome": "not_submitted",
            "errors": [
                {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
                for err in exc.errors()
            ],
        },
    )


async def root(request: Request):
    """Root endpoint."""
    return {
        "message": "NFT Ticketing API",
        "version": request.app.state.settings.version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type="text/plain")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Settings are read from the environment when not given."""
    settings = settings or load_settings()

    # Initialize Sentry
    init_sentry(settings)

    app = FastAPI(
        title="NFT Ticketing API",
        description="Relays ticket lifecycle actions to the ticket contract and mirrors confirmed state",
        version=settings.version,
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add response compression (gzip)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Add metrics middleware for Prometheus
    app.add_middleware(MetricsMiddleware)

    app.include_router(tickets.router)
    app.include_router(events.router)

    app.add_exception_handler(TicketingError, ticketing_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_api_route("/", root, methods=["GET"])
    app.add_api_route("/health", health_check, methods=["GET"])
    app.add_api_route("/metrics", metrics, methods=["GET"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
