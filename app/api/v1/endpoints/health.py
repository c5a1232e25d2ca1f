# app/api/v1/endpoints/health.py
from fastapi import APIRouter, HTTPException

from app.db.session import check_db_connection

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/db")
def health_db():
    if not check_db_connection():
        raise HTTPException(status_code=503, detail="Base de datos no disponible")
    return {"db": "ok"}
