import logging
import os

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from db.base import Base
from db.session import engine

# models must be imported before create_all sees the metadata
from models import import_jobs, orders  # noqa: F401

# --------------------------------------------------
# LOGGING
# --------------------------------------------------
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --------------------------------------------------
# APP
# --------------------------------------------------
app = FastAPI(
    title="Order Delivery Analytics API",
    version="1.0.0",
    swagger_ui_parameters={
        "displayRequestDuration": True,
    },
)


# --------------------------------------------------
# DB INIT / SHUTDOWN
# --------------------------------------------------
@app.on_event("startup")
async def _init_db():
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception:
        logger.exception("DB init failed")


@app.on_event("shutdown")
async def _close_db():
    await engine.dispose()


# --------------------------------------------------
# CORS
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.options("/{path:path}")
def preflight(path: str, request: Request):
    return Response(status_code=204)


# --------------------------------------------------
# ROUTERS
# --------------------------------------------------
from routers.analytics import router as analytics_router  # noqa: E402
from routers.imports import router as imports_router  # noqa: E402
from routers.orders import router as orders_router  # noqa: E402

app.include_router(imports_router)
app.include_router(orders_router)
app.include_router(analytics_router)


# --------------------------------------------------
# HEALTH CHECK
# --------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/")
def root():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
