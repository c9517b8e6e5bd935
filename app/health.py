# app/health.py
from datetime import datetime
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.redis import redis_client
from app.db import SessionLocal

logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"


def check_database() -> bool:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False
    finally:
        db.close()


def add_health_endpoint(app: FastAPI):
    @app.get("/health", summary="Health Check", tags=["Health"])
    def health_check():
        db_healthy = check_database()

        # Redis only matters when it holds the PIN records
        redis_required = settings.PIN_STORE_BACKEND.lower() == "redis"
        redis_healthy = redis_client.health_check() if redis_required else None

        overall_healthy = db_healthy and (redis_healthy is not False)

        content = {
            "status": "healthy" if overall_healthy else "unhealthy",
            "database": "connected" if db_healthy else "disconnected",
            "timestamp": datetime.utcnow().isoformat(),
            "service": "pingate-api",
            "version": SERVICE_VERSION,
        }
        if redis_required:
            content["redis"] = "connected" if redis_healthy else "disconnected"

        return JSONResponse(status_code=200 if overall_healthy else 503, content=content)

    @app.get("/", summary="Root Endpoint", tags=["Health"])
    def root():
        return {
            "message": f"{settings.PROJECT_NAME} API",
            "status": "operational",
            "version": SERVICE_VERSION,
            "timestamp": datetime.utcnow().isoformat(),
        }
