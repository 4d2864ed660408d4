#=================================================================
# shopdesk/main_app.py
# FastAPI application entry-point for the operator console.
#=================================================================

import logging, secrets

from fastapi import FastAPI, Depends, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from shopdesk import logging_filters
from shopdesk.config import settings
from shopdesk.routes import router as console_router, get_registry, EXCEPTION_HANDLERS
from shopdesk.console import ConsoleRegistry

# --- FastAPI instance ---
app = FastAPI(
    title="Shopdesk Operator Console",
    description="Order consolidation and catalog bulk actions for shop staff.",
)

# --- Logging setup (console, INFO level) ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s | %(message)s"
)
logger = logging.getLogger("uvicorn.error")
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging_filters.install()

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Simple HTTP Basic Auth for the console endpoints ---
security = HTTPBasic()

def verify_admin(credentials: HTTPBasicCredentials = Depends(security)):
    ok_user = secrets.compare_digest(credentials.username or "", settings.ADMIN_USER or "")
    ok_pass = secrets.compare_digest(credentials.password or "", settings.ADMIN_PASS or "")
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

# ---------------- Include routers ----------------
app.include_router(console_router, dependencies=[Depends(verify_admin)])   # /api/t/{tenant_id}/*

for exc_type, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_type, handler)

# --- Root endpoint ---
@app.get("/")
async def home():
    return {"status": "running", "service": "Shopdesk Operator Console"}

@app.get("/api/health", dependencies=[Depends(verify_admin)])
async def health(registry: ConsoleRegistry = Depends(get_registry)):
    backend_ok = await registry.backend.ping()
    return {"backend": {"ok": backend_ok}, "tenants": registry.snapshot()}

# --- Global error handler (keeps full stack trace in logs) ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": f"Request failed: {str(exc)}"},
    )
