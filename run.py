# run.py

import logging
import uvicorn
import os
import time
from sqlalchemy.exc import OperationalError
from app.db import Base, engine
import app.models  # noqa: F401  registers tables on Base.metadata

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Silence SQLAlchemy noisy logs
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.dialects").setLevel(logging.WARNING)


def init_db(max_retries: int = 3, retry_delay: int = 5) -> bool:
    """Create database tables, retrying while the database comes up"""
    for attempt in range(max_retries):
        try:
            logger.info(f"Connecting to database (attempt {attempt + 1}/{max_retries})...")
            with engine.connect():
                logger.info("Database connection successful")

            Base.metadata.create_all(bind=engine)
            logger.info("Database tables ready")
            return True

        except OperationalError as e:
            logger.error(f"Database connection failed (attempt {attempt + 1}/{max_retries}): {e}")
            if attempt < max_retries - 1:
                logger.info(f"Retrying in {retry_delay} seconds...")
                time.sleep(retry_delay)

    logger.error("All database connection attempts failed")
    return False


port = int(os.environ.get("PORT", 8000))

if __name__ == "__main__":
    if not init_db():
        logger.warning("Starting server without database initialization...")

    logger.info(f"Starting FastAPI server on port {port}...")
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level="info"
    )
