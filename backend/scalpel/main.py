from contextlib import asynccontextmanager
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from scalpel.api import account, auth, files, promo, webhooks
from scalpel.config import settings
from scalpel.core.csrf import CSRFCookieMiddleware
from scalpel.core.errors import ScalpelError, scalpel_error_handler
from scalpel.core.ratelimit import limit_general

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("startup", env=settings.APP_ENV, version="1.0.0")
    try:
        from scalpel.db import init_db
        await init_db()
        log.info("database_ready")
    except Exception as e:
        log.warning("database_not_available", error=str(e))
    log.info("startup_complete")
    yield
    from scalpel.db import close_db
    await close_db()
    log.info("shutdown")


app = FastAPI(
    title="Scalpel",
    description="Batch file renaming with server-side quota, streamed back as a zip",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS_ORIGINS may arrive from the environment as a plain comma-separated string
cors_origins = settings.CORS_ORIGINS
if isinstance(cors_origins, str):
    cors_origins = [o.strip() for o in cors_origins.split(",")]

app.add_middleware(CSRFCookieMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-CSRF-Token", "X-XSRF-TOKEN"],
)

app.add_exception_handler(ScalpelError, scalpel_error_handler)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err["loc"][1:]) for err in exc.errors() if len(err["loc"]) > 1})
    message = f"Invalid or missing fields: {', '.join(fields)}" if fields else "Invalid input"
    return JSONResponse(status_code=400, content={"ok": False, "error": message, "code": "invalid_input"})


limited = [Depends(limit_general)]
app.include_router(auth.router, prefix="/api", tags=["Auth"], dependencies=limited)
app.include_router(account.router, prefix="/api", tags=["Account"], dependencies=limited)
app.include_router(promo.router, prefix="/api", tags=["Promo"], dependencies=limited)
app.include_router(files.router, prefix="/api", tags=["Files"], dependencies=limited)
app.include_router(webhooks.router, prefix="/webhook", tags=["Webhooks"])


@app.get("/health", tags=["System"])
async def health():
    return {"status": "ok", "version": "1.0.0", "env": settings.APP_ENV}


@app.get("/", tags=["System"])
async def root():
    return {"name": "Scalpel API", "docs": "/docs", "health": "/health"}
