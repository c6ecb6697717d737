"""
Cleanup Sweeper
Expires stale holds and purges used/expired OTP codes and manage tokens
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..domain.holds.service import HoldService
from ..domain.manage.service import ManageService
from ..domain.otp.service import OtpService

logger = logging.getLogger(__name__)


@dataclass
class CleanupSummary:
    otps_deleted: int = 0
    holds_expired: int = 0
    tokens_deleted: int = 0
    errors: int = 0


class CleanupSweeper:
    """
    Periodic reconciliation of booking-flow state.

    Owned by the application lifespan: construct it with a session factory, call
    start() once at boot and stop() on shutdown. run_cleanup() can be called at any
    time for an on-demand sweep.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self._task: Optional[asyncio.Task] = None
        self.interval_seconds: float = 60.0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_minutes: float = 1) -> None:
        if self.is_running:
            logger.info("🧹 Cleanup sweeper already running")
            return

        self.interval_seconds = interval_minutes * 60
        logger.info(f"🧹 Starting cleanup sweeper (every {interval_minutes} minute(s))")
        self._task = asyncio.get_running_loop().create_task(self.run_forever())

    async def stop(self) -> None:
        if not self._task:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("🧹 Cleanup sweeper stopped")

    async def run_forever(self) -> None:
        # First sweep runs immediately, before the first interval elapses
        while True:
            try:
                self.run_cleanup()
            except Exception as e:
                logger.error(f"❌ Error in cleanup sweeper loop: {e}")
            await asyncio.sleep(self.interval_seconds)

    def run_cleanup(self, now: Optional[datetime] = None) -> CleanupSummary:
        """Run all three steps; a failing step is logged and the others still run"""
        now = now or datetime.utcnow()
        started = time.time()
        summary = CleanupSummary()

        steps = (
            ("otps_deleted", lambda db: OtpService(db).cleanup_expired_otps(now)),
            ("holds_expired", lambda db: HoldService(db).cleanup_expired_holds(now)),
            ("tokens_deleted", lambda db: ManageService(db).cleanup_expired_tokens(now)),
        )

        for field, step in steps:
            db = self.session_factory()
            try:
                setattr(summary, field, step(db))
            except Exception as e:
                summary.errors += 1
                logger.error(f"❌ Cleanup step {field} failed: {e}")
            finally:
                db.close()

        duration_ms = int((time.time() - started) * 1000)
        logger.info(
            f"🧹 Cleanup completed in {duration_ms}ms: {summary.otps_deleted} OTPs, "
            f"{summary.holds_expired} holds, {summary.tokens_deleted} tokens"
        )
        return summary


async def run_cleanup_worker(session_factory: Callable[[], Session], interval_minutes: float = 1):
    """Standalone loop for running the sweeper outside the API process"""
    sweeper = CleanupSweeper(session_factory)
    sweeper.interval_seconds = interval_minutes * 60
    logger.info(f"🚀 Starting cleanup worker (every {interval_minutes} minute(s))...")
    await sweeper.run_forever()
