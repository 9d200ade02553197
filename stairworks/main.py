from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from .config import settings
from .database import engine, Base, SessionLocal
from .exceptions import (
    CatalogUnavailableError,
    ConfigurationLockedError,
    InvalidSpecificationError,
    ShopGenerationError,
)
from .routers import jobs, shops, stair_configurations, stairs

logger = logging.getLogger("stairworks")

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Stairworks",
    description=f"Stair pricing and shop cut lists for {settings.COMPANY_NAME}",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidSpecificationError)
async def invalid_specification_handler(request: Request, exc: InvalidSpecificationError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "field": exc.field, "reason": exc.reason},
    )


@app.exception_handler(CatalogUnavailableError)
async def catalog_unavailable_handler(request: Request, exc: CatalogUnavailableError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(ConfigurationLockedError)
async def configuration_locked_handler(request: Request, exc: ConfigurationLockedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ShopGenerationError)
async def shop_generation_handler(request: Request, exc: ShopGenerationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# API routes
app.include_router(stairs.router, prefix="/api")
app.include_router(stair_configurations.router, prefix="/api")
app.include_router(jobs.router, prefix="/api")
app.include_router(shops.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "stairworks"}


@app.on_event("startup")
def auto_seed():
    """Seed the default stair catalog on first run."""
    db = SessionLocal()
    try:
        seeded = stairs.seed_stair_catalog(db)
        if seeded:
            logger.info("Seeded %d default stair catalog rows", seeded)
    finally:
        db.close()
