"""
Main FastAPI Application
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from fyndak.api import admin, bids, products, profiles, websockets
from fyndak.core.config import Settings, get_settings
from fyndak.core.context import AppContext, build_context
from fyndak.core.dependencies import get_context, get_db
from fyndak.core.errors import HTTP_STATUS_BY_KIND, FyndakError
from fyndak.core.logging_config import setup_logging
from fyndak.infrastructure.database import check_database, init_db
from fyndak.middleware.tracing import TracingMiddleware
from fyndak.models import Bid, Product, ProductStatus

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and its context from settings"""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    context = build_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

        init_db(context.engine)
        await context.notifier.connect()

        yield

        logger.info("Shutting down...")
        await context.notifier.disconnect()
        context.engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TracingMiddleware)

    @app.exception_handler(FyndakError)
    async def fyndak_error_handler(request: Request, exc: FyndakError):
        return JSONResponse(status_code=HTTP_STATUS_BY_KIND[exc.kind], content=exc.to_dict())

    app.include_router(profiles.router)
    app.include_router(products.router)
    app.include_router(bids.router)
    app.include_router(admin.router)
    app.include_router(websockets.router)

    @app.get("/", tags=["root"])
    async def root(db: Session = Depends(get_db)):
        """Server status and statistics"""
        return {
            "message": f"{settings.APP_NAME} v{settings.APP_VERSION}",
            "status": "running",
            "total_products": db.query(Product).count(),
            "active_products": db.query(Product).filter(Product.status == ProductStatus.ACTIVE).count(),
            "total_bids": db.query(Bid).count(),
        }

    @app.get("/health", tags=["root"])
    async def health_check(context: AppContext = Depends(get_context)):
        """Store and change feed health"""
        db_status = "healthy" if check_database(context.engine) else "unhealthy"
        notifier_stats = context.notifier.get_stats()

        if not settings.REALTIME_ENABLED:
            realtime_status = "local"
        else:
            realtime_status = "healthy" if notifier_stats["is_connected"] else "unhealthy"

        overall = "healthy" if db_status == "healthy" and realtime_status != "unhealthy" else "degraded"

        return {
            "status": overall,
            "components": {
                "database": db_status,
                "realtime": realtime_status
            },
            "details": {
                "notifier": notifier_stats
            }
        }

    return app


app = create_app()
