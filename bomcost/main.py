from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from .config import settings
from .database import engine, Base
from .errors import BomCostError, ConflictError, NotFoundError
from .routers import boms, formulas, materials, shapes, templates

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("bomcost")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)


def _run_migrations():
    """Run pending Alembic migrations on startup.

    Databases created by Base.metadata.create_all() before the first
    migration ran are stamped with the base revision first.
    """
    try:
        from alembic.config import Config
        from alembic import command
        from sqlalchemy import inspect

        alembic_ini = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
        if not os.path.exists(alembic_ini):
            logger.info("alembic.ini not found, skipping migrations")
            return

        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

        insp = inspect(engine)
        tables = insp.get_table_names()
        if "alembic_version" not in tables and "boms" in tables:
            logger.info("Stamping base migration 3b9f0c2a7d14 (tables already exist)")
            command.stamp(alembic_cfg, "3b9f0c2a7d14")

        logger.info("Running pending Alembic migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception as e:
        # Never let migration errors prevent app startup
        logger.warning(f"Alembic migration warning: {e}")


app = FastAPI(
    title="BOM Cost Engine",
    description="Parametric shape calculation and bill-of-materials costing",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BomCostError)
def bomcost_error_handler(request: Request, exc: BomCostError):
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 422
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# API routes
app.include_router(formulas.router, prefix="/api")
app.include_router(shapes.router, prefix="/api")
app.include_router(materials.router, prefix="/api")
app.include_router(boms.router, prefix="/api")
app.include_router(templates.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "bomcost"}


@app.on_event("startup")
def auto_migrate():
    """Run pending Alembic migrations on startup."""
    _run_migrations()


@app.on_event("startup")
def auto_seed():
    """Seed the default material catalog on first run."""
    from .database import SessionLocal
    from .repository import seed_materials
    db = SessionLocal()
    try:
        added = seed_materials(db)
        if added:
            logger.info("Seeded %d materials", added)
    finally:
        db.close()
