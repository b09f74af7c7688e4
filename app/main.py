import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.api.v1.auth import router as auth_router
from app.api.v1.customers import router as customers_router
from app.api.v1.diagnostics import router as diagnostics_router
from app.api.v1.service_orders import router as service_orders_router
from app.api.v1.tenants import router as tenants_router
from app.api.v1.users import router as users_router
from app.api.v1.vehicles import router as vehicles_router
from app.core.config import settings
from app.core.errors import DomainError, domain_error_handler
from app.db import models
from app.db.init_db import seed_demo_data
from app.db.session import SessionLocal, engine

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("oficina")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Gestao de oficinas mecanicas com diagnostico assistido por IA",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(DomainError, domain_error_handler)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("integrity error path=%s error=%s", request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "Registro duplicado ou em conflito", "code": "CONFLICT"},
    )


@app.on_event("startup")
def on_startup() -> None:
    models.Base.metadata.create_all(bind=engine)
    if settings.SEED_DEMO_DATA:
        with SessionLocal() as db:
            seed_demo_data(db)
    if settings.ENV.lower() == "production":
        if settings.SECRET_KEY == "dev-secret-change-me":
            logger.warning("SECRET_KEY esta usando valor padrao em producao.")
        if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            logger.warning("SQLALCHEMY_DATABASE_URI aponta para SQLite em producao.")
        if not settings.ai_live_enabled:
            logger.warning("IA em modo simulacao em producao (AI_PROVIDER=%s).", settings.AI_PROVIDER)


API_PREFIX = "/api/v1"

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(tenants_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(customers_router, prefix=API_PREFIX)
app.include_router(vehicles_router, prefix=API_PREFIX)
app.include_router(service_orders_router, prefix=API_PREFIX)
app.include_router(diagnostics_router, prefix=API_PREFIX)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Erro interno method=%s path=%s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Ocorreu um erro, tente novamente mais tarde", "code": "INTERNAL_ERROR"},
        )
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health")
def health():
    return {"status": "ok"}
