"""
Calendar sync job
Reconcile-then-repair pass over a rolling date window. The trigger (arq cron in
worker.py, or POST /sync/run) is kept separate from the working-hours predicate
and from the reconciliation logic itself.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import (
    SYNC_CRON_MINUTES,
    SYNC_END_HOUR,
    SYNC_LOOKAHEAD_DAYS,
    SYNC_LOOKBACK_DAYS,
    SYNC_START_HOUR,
    VENUE_TIMEZONE,
)
from ..database import SessionLocal
from .calendar_fanout import CalendarFanOut
from .calendar_reconciliation import ReconciliationEngine, ReconciliationUnavailable
from .calendar_repair import RepairExecutor
from .google_calendar_service import CalendarGateway

logger = logging.getLogger(__name__)


def parse_cron_minutes(expression: str) -> set[int]:
    """
    Parse the minute field of a cron expression.

    Supports "*", "*/N", single values and comma-separated lists ("0,30").
    """
    minutes: set[int] = set()
    for part in (expression or "").split(","):
        part = part.strip()
        if not part:
            continue
        if part == "*":
            return set(range(60))
        if part.startswith("*/"):
            step = int(part[2:])
            if step <= 0:
                raise ValueError(f"Invalid cron step: {part}")
            minutes.update(range(0, 60, step))
            continue
        value = int(part)
        if not 0 <= value < 60:
            raise ValueError(f"Cron minute out of range: {value}")
        minutes.add(value)
    if not minutes:
        raise ValueError(f"Empty cron minute expression: {expression!r}")
    return minutes


class WorkingHoursWindow:
    """
    Hours of the venue-local day during which the sync may run.

    ``start_hour`` is inclusive and ``end_hour`` exclusive. A window whose end is
    not after its start wraps past midnight (7 → 3 covers 07:00 to 02:59).
    Equal hours mean all day.
    """

    def __init__(
        self,
        start_hour: int = SYNC_START_HOUR,
        end_hour: int = SYNC_END_HOUR,
        timezone: str = VENUE_TIMEZONE,
    ):
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)

    def contains(self, moment: datetime) -> bool:
        local = moment.astimezone(self.tz) if moment.tzinfo else moment
        hour = local.hour
        if self.start_hour == self.end_hour:
            return True
        if self.start_hour < self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour

    def describe(self) -> str:
        return f"{self.start_hour:02d}:00-{self.end_hour:02d}:00 {self.timezone}"


class SyncRunResult(BaseModel):
    ran: bool
    reason: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    reconciliation: Optional[dict[str, Any]] = None
    repair: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class SyncJob:
    """
    One reconcile + repair pass.

    Built once per process (FastAPI lifespan or arq worker startup) around the
    shared gateway; each run opens its own database session.
    """

    def __init__(
        self,
        gateway: CalendarGateway,
        session_factory: Callable[[], Session] = SessionLocal,
        window: Optional[WorkingHoursWindow] = None,
        lookback_days: int = SYNC_LOOKBACK_DAYS,
        lookahead_days: int = SYNC_LOOKAHEAD_DAYS,
        cron_minutes: str = SYNC_CRON_MINUTES,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.window = window or WorkingHoursWindow()
        self.lookback_days = lookback_days
        self.lookahead_days = lookahead_days
        self.cron_minutes = sorted(parse_cron_minutes(cron_minutes))
        self.last_run: Optional[SyncRunResult] = None
        self._lock = asyncio.Lock()

    def date_window(self, now: datetime) -> tuple[str, str]:
        today = now.astimezone(self.window.tz).date() if now.tzinfo else now.date()
        start = today - timedelta(days=self.lookback_days)
        end = today + timedelta(days=self.lookahead_days)
        return start.isoformat(), end.isoformat()

    async def run(self, now: Optional[datetime] = None, force: bool = False) -> SyncRunResult:
        """
        Run one pass. Outside working hours the pass is skipped unless ``force``.
        Never raises; failures are reported on the result.
        """
        now = now or datetime.now(ZoneInfo(self.window.timezone))

        if not force and not self.window.contains(now):
            logger.info("😴 Outside working hours, skipping calendar sync")
            return SyncRunResult(ran=False, reason="outside_working_hours", started_at=now)

        if self._lock.locked():
            logger.info("🔄 Calendar sync already running, skipping")
            return SyncRunResult(ran=False, reason="already_running", started_at=now)

        async with self._lock:
            start_date, end_date = self.date_window(now)
            result = SyncRunResult(ran=True, started_at=now, start_date=start_date, end_date=end_date)
            logger.info(f"🚀 Calendar sync pass {start_date} → {end_date}")

            db = self.session_factory()
            try:
                report = await ReconciliationEngine(db, self.gateway).reconcile(start_date, end_date)
                result.reconciliation = report.to_summary()

                if report.repairable:
                    logger.info(f"🔧 {len(report.repairable)} bookings need repair")
                    executor = RepairExecutor(db, CalendarFanOut(self.gateway))
                    repair_report = await executor.repair(report.repairable)
                    result.repair = repair_report.to_dict()
                    if repair_report.errors:
                        logger.warning(f"⚠️ Repair errors: {repair_report.errors[:3]}")
                else:
                    logger.info("✅ All bookings are in the calendar")
            except ReconciliationUnavailable as e:
                result.error = e.message
                logger.error(f"❌ Calendar sync could not reconcile: {e.message}")
            except Exception as e:
                db.rollback()
                result.error = str(e)
                logger.error(f"❌ Calendar sync failed: {e}")
            finally:
                db.close()

            result.finished_at = datetime.now(ZoneInfo(self.window.timezone))
            self.last_run = result
            return result

    def status(self, now: Optional[datetime] = None) -> dict[str, Any]:
        now = now or datetime.now(ZoneInfo(self.window.timezone))
        return {
            "cronMinutes": self.cron_minutes,
            "workingHours": self.window.describe(),
            "withinWorkingHours": self.window.contains(now),
            "lookbackDays": self.lookback_days,
            "lookaheadDays": self.lookahead_days,
            "running": self._lock.locked(),
            "lastRun": self.last_run.model_dump(mode="json") if self.last_run else None,
        }
