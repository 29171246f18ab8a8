# ispbill/main.py
import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env BEFORE anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.errors import TenancyViolation, UnscopedQueryError
from .db.engine import create_db_and_tables

# API Routers
from .api import health
from .api.customers import main as customers_main_api
from .api.invoices import main as invoices_main_api
from .api.packages import main as packages_main_api
from .api.tickets import main as tickets_main_api
from .api.webhooks import main as webhooks_main_api

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - [%(name)s] - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="ISP Billing", version="0.1.0")


# --- Database Initialization ---
@app.on_event("startup")
def on_startup():
    """Initialize database tables on application startup"""
    create_db_and_tables()
    logger.info("Database tables initialized")


# ============================================================================
# --- SECURITY: CORS ---
# ============================================================================
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", settings.app_url)
origins = allowed_origins_env.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# --- SECURITY: HTTP HEADERS ---
# ============================================================================
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# ============================================================================
# --- GLOBAL EXCEPTION HANDLERS ---
# ============================================================================
@app.exception_handler(TenancyViolation)
async def tenancy_violation_handler(request: Request, exc: TenancyViolation):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(UnscopedQueryError)
async def unscoped_query_handler(request: Request, exc: UnscopedQueryError):
    logger.error(f"Unscoped tenant read on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================================================
# --- ROUTERS INCLUSION ---
# ============================================================================
app.include_router(health.router, prefix="/api")
app.include_router(customers_main_api.router, prefix="/api", tags=["Customers"])
app.include_router(packages_main_api.router, prefix="/api", tags=["Packages"])
app.include_router(invoices_main_api.router, prefix="/api", tags=["Invoices"])
app.include_router(tickets_main_api.router, prefix="/api", tags=["Tickets"])
app.include_router(webhooks_main_api.router, tags=["Webhooks"])
