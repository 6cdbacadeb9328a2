import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from asset_register.api.routes import (
    asset_numbers,
    assets,
    dashboard,
    roles,
    scans,
    transfer,
    valuation,
)
from asset_register.config.settings import get_settings
from asset_register.models.database import (
    get_engine,
    get_session,
    init_db,
    seed_depreciation_groups,
)

logger = logging.getLogger("asset_register.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting asset-register API")
    engine = get_engine()
    init_db(engine)
    with get_session(engine) as session:
        seed_depreciation_groups(session)
    yield
    logger.info("Shutting down asset-register API")


app = FastAPI(
    title="asset-register API",
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


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed = time.time() - start
    logger.info(
        "%s %s %d %.3fs",
        request.method,
        request.url.path,
        response.status_code,
        elapsed,
    )
    return response


app.include_router(assets.router, prefix="/api/v1")
app.include_router(asset_numbers.router, prefix="/api/v1")
app.include_router(valuation.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(scans.router, prefix="/api/v1")
app.include_router(transfer.router, prefix="/api/v1")
app.include_router(roles.router, prefix="/api/v1")


@app.get("/api/v1/health")
def health():
    """Root-level health check."""
    return {"status": "ok", "service": "asset-register"}
