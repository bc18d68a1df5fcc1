"""FastAPI main application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import os
import logging
import traceback

import structlog

from seedsweep.config import init_config
from seedsweep.db.database import init_db, get_db_sync
from seedsweep.api.routes import router
from seedsweep.core.settings import reload_integrations
from seedsweep.scheduler import start_scheduler, stop_scheduler

# Setup logging (will be configured from config after init)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# Initialize config
# Support both /config/config.yaml (Docker) and ./config/config.yaml (local dev)
config_path = os.getenv("CONFIG_PATH", "/config/config.yaml")

possible_paths = [
    config_path,
    "/config/config.yaml",
    "./config/config.yaml",
    os.path.join(os.path.dirname(__file__), "..", "config", "config.yaml"),
]

config_path_found = None
for path in possible_paths:
    if os.path.exists(path):
        config_path_found = path
        break

if not config_path_found:
    error_msg = f"""
ERROR: Configuration file not found!

Tried the following paths:
{chr(10).join(f'  - {p}' for p in possible_paths)}

Please ensure:
1. The file config/config.yaml exists (copy from config.example.yaml)
2. The CONFIG_PATH environment variable points to the correct file
"""
    logger.error(error_msg)
    raise FileNotFoundError(error_msg)

logger.info(f"Loading configuration from: {config_path_found}")
config = init_config(config_path_found)

logging.getLogger().setLevel(config.app.log_level.upper())
if config.app.log_format == "json":
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
    )

# Initialize database
database_url = os.getenv("DATABASE_URL") or config.app.resolved_database_url()
try:
    init_db(database_url)
except Exception as e:
    logger.error(f"Failed to initialize database: {str(e)}")
    logger.error(f"Data directory: {config.app.data_dir}")
    logger.error("Please ensure the data directory exists and is writable")
    raise

# Load integrations (YAML seeds + settings table)
db = get_db_sync()
try:
    reload_integrations(db, config)
finally:
    db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Démarre le scheduler avec l'application et l'arrête à la fermeture."""
    start_scheduler()
    yield
    stop_scheduler()


# Create FastAPI app
app = FastAPI(title="SeedSweep", version="1.0.0", lifespan=lifespan)

# Include API routes
app.include_router(router)


# Global exception handler for unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with detailed logging."""
    logger.exception(f"Unhandled exception in {request.method} {request.url}")
    return JSONResponse(
        status_code=500,
        content={
            "error": str(exc),
            "type": exc.__class__.__name__,
            "message": f"Internal server error: {str(exc)}",
            "path": str(request.url),
            "method": request.method,
            "traceback": traceback.format_exc()
        }
    )
