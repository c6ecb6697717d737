"""
Cleanup Sweeper Runner
Run this as a separate process: python run_cleanup_worker.py
Set ENABLE_CLEANUP_SWEEPER=false on the API processes when using it.
"""

import asyncio
import logging
import sys

from app.config import CLEANUP_INTERVAL_MINUTES
from app.database import SessionLocal
from app.workers.cleanup_worker import run_cleanup_worker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Starting Cleanup Sweeper...")
    try:
        asyncio.run(run_cleanup_worker(SessionLocal, CLEANUP_INTERVAL_MINUTES))
    except KeyboardInterrupt:
        logger.info("👋 Cleanup worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Cleanup worker crashed: {e}")
        sys.exit(1)
