import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from till.core.config import settings
from till.core.database import SessionLocal, init_db
from till.core.errors import TillError
from till.core.logging_config import configure_logging
from till.routes.closings import router as closings_router
from till.routes.consignment import router as consignment_router
from till.routes.credit import router as credit_router
from till.routes.delivery import router as delivery_router
from till.routes.health import router as health_router
from till.routes.ledger import router as ledger_router
from till.routes.safe import router as safe_router
from till.routes.stores import router as stores_router
from till.services.seed import seed_demo


logger = logging.getLogger(__name__)


async def till_error_handler(request: Request, exc: TillError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


def create_app() -> FastAPI:
    app = FastAPI(title="Pharmacy Till API", version="0.1.0")

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(TillError, till_error_handler)

    app.include_router(health_router, tags=["health"])
    app.include_router(stores_router, prefix="/stores", tags=["stores"])
    app.include_router(ledger_router, prefix="/ledger", tags=["ledger"])
    app.include_router(credit_router, prefix="/credit", tags=["credit"])
    app.include_router(consignment_router, prefix="/consignment", tags=["consignment"])
    app.include_router(delivery_router, prefix="/delivery", tags=["delivery"])
    app.include_router(closings_router, prefix="/closings", tags=["closings"])
    app.include_router(safe_router, prefix="/safe", tags=["safe"])

    return app


configure_logging()
app = create_app()

# Only seed in development or when explicitly requested
if settings.env == "dev" or os.getenv("FORCE_SEED") == "true":
    init_db()
    with SessionLocal() as db:
        seed_demo(db)
