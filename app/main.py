# app/main.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import setup_logging
from app.api.v1.endpoints import (
    health, auth, users, institutions, groups, surveys, processes, dashboard, reports,
)

setup_logging()
logger = logging.getLogger(__name__)

API_V1_PREFIX = "/api/v1"

app = FastAPI(
    title=settings.APP_NAME,
    description="API de asignación de encuestas y seguimiento de completitud",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Datos inválidos", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Error interno del servidor"},
    )


# Routers versionados
app.include_router(health.router,       prefix=API_V1_PREFIX)
app.include_router(auth.router,         prefix=API_V1_PREFIX)
app.include_router(users.router,        prefix=API_V1_PREFIX)
app.include_router(institutions.router, prefix=API_V1_PREFIX)
app.include_router(groups.router,       prefix=API_V1_PREFIX)
app.include_router(surveys.router,      prefix=API_V1_PREFIX)
app.include_router(processes.router,    prefix=API_V1_PREFIX)
app.include_router(dashboard.router,    prefix=API_V1_PREFIX)
app.include_router(reports.router,      prefix=API_V1_PREFIX)


# Rutas básicas fuera de /api/v1
@app.get("/health")
def health_root():
    return {"status": "ok", "message": "API funcionando correctamente"}


@app.get("/")
def root():
    return {
        "message": "Bienvenido a la API de SaludBit Pro",
        "version": "1.0.0",
        "docs": "/docs",
        "api_v1": API_V1_PREFIX,
    }
