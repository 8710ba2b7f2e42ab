from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from database import database, get_db
from middleware import require_auth
from models import User, UserRole
from routes import auth, onboard, webhooks, valuations, extras, offers
from utils.errors import AppError

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

LOCAL_FRONTEND_ORIGIN = "http://localhost:5173"
VERCEL_PREVIEW_SUFFIX = ".vercel.app"

def normalize_origin(url: str = None) -> str:
    if not url:
        return ""
    return url.strip().rstrip("/")

def allowed_origins() -> list:
    return [o for o in (normalize_origin(os.environ.get("FRONTEND_URL")), LOCAL_FRONTEND_ORIGIN) if o]

def is_allowed_origin(origin: str) -> bool:
    o = normalize_origin(origin)
    return o in allowed_origins() or o.endswith(VERCEL_PREVIEW_SUFFIX)

def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").strip().lower() == "production"

# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Valoris API")
    if not os.environ.get("PYTEST_RUNNING"):
        await database.connect()

    # Stripe config: log mode (test/live) from key prefix, never the key itself
    stripe_key = (os.environ.get("STRIPE_SECRET_KEY") or os.environ.get("STRIPE_API_KEY") or "").strip()
    if not stripe_key:
        logger.error("STRIPE_API_KEY / STRIPE_SECRET_KEY is not set. Creator onboarding will fail.")
    else:
        stripe_mode = "test" if stripe_key.startswith("sk_test_") else "live"
        logger.info("STRIPE_MODE = %s (from Stripe key prefix)", stripe_mode)
    if not (os.environ.get("STRIPE_WEBHOOK_SECRET") or "").strip():
        logger.error("STRIPE_WEBHOOK_SECRET is not set. Stripe webhooks will be rejected.")

    logger.info("FRONTEND_URL (raw): %s", os.environ.get("FRONTEND_URL"))
    logger.info("CORS allowed origins: %s (+ *%s)", allowed_origins(), VERCEL_PREVIEW_SUFFIX)

    yield

    # Shutdown
    logger.info("Shutting down Valoris API")
    await database.close()

# Create FastAPI app
app = FastAPI(
    title="Valoris API",
    description="Property valuation, extras and creator onboarding",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=allowed_origins(),
    allow_origin_regex=r"https?://.*\.vercel\.app",
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def block_disallowed_origins(request: Request, call_next):
    """Answer disallowed browser origins with a readable 403 instead of a bare CORS failure.

    Stripe calls carry no Origin; the webhook path is exempt regardless.
    """
    origin = request.headers.get("origin")
    if origin and not request.url.path.startswith("/webhooks/") and not is_allowed_origin(origin):
        return JSONResponse(
            status_code=403,
            content={"ok": False, "error": f"CORS blocked for origin: {origin}"}
        )
    return await call_next(request)

@app.middleware("http")
async def strip_api_prefix(request: Request, call_next):
    """Older frontends call /api/...; serve them from the unprefixed routes."""
    path = request.scope["path"]
    if path == "/api" or path.startswith("/api/"):
        request.scope["path"] = path[len("/api"):] or "/"
    return await call_next(request)

# Include routers
app.include_router(auth.router)
app.include_router(onboard.router)
app.include_router(webhooks.router)
app.include_router(valuations.router)
app.include_router(extras.router)
app.include_router(offers.router)

# Health check
@app.get("/health")
async def health_check():
    return {"ok": True, "app": "Valoris API"}

@app.get("/me")
async def me(user: dict = Depends(require_auth)):
    """Token payload of the caller."""
    return {"ok": True, "user": user}

if not is_production():
    @app.post("/test/create-user")
    async def create_test_user(db=Depends(get_db)):
        """Dev helper: throwaway account that cannot log in."""
        stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        user = User(
            name="Test User",
            email=f"test{stamp}@mail.com",
            password_hash="not-real-hash",
            role=UserRole.USER,
        )
        await db.users.insert_one(user.model_dump())
        return {"ok": True, "user": user.to_api(exclude={"password_hash"})}

# Application errors carry their own status
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.message}
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": str(exc.detail)}
    )

# Malformed bodies are client errors: 400 with the first validation message
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.warning(
        "Validation failed path=%s errors=%s",
        request.url.path,
        [(e.get("loc"), e.get("msg"), e.get("type")) for e in errors],
    )
    message = "Invalid request"
    if errors:
        loc = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{loc}: {errors[0].get('msg')}" if loc else errors[0].get("msg", message)
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": message}
    )

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": str(exc) or "Server error"}
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8001")),
        reload=os.getenv("ENVIRONMENT") == "development"
    )
